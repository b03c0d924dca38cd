"""Delivery channels.

One dispatcher per channel code:
- email: email.EmailChannel
- sms: sms.SmsChannel
- whatsapp: whatsapp.WhatsAppChannel
- inapp: inapp.InAppChannel

Use the factory to build the full registry:
    from notify_worker.channels import build_channel_registry
    channels = build_channel_registry(app_config, env_config)
    outcome = channels["email"].send(request)
"""

from .base import BaseChannel, HttpChannel, normalize_mobile
from .email import EmailChannel
from .exceptions import (
    ChannelConfigurationError,
    ChannelError,
    ProviderResponseError,
    RecipientValidationError,
)
from .factory import build_channel_registry
from .inapp import InAppChannel
from .sms import SmsChannel
from .whatsapp import WhatsAppChannel, body_parameters

__all__ = [
    # Base and factory
    "BaseChannel",
    "HttpChannel",
    "build_channel_registry",
    "normalize_mobile",
    # Channels
    "EmailChannel",
    "SmsChannel",
    "WhatsAppChannel",
    "InAppChannel",
    "body_parameters",
    # Exceptions
    "ChannelError",
    "ChannelConfigurationError",
    "RecipientValidationError",
    "ProviderResponseError",
]
