"""Factory for the channel registry."""

from typing import Dict, Optional

import requests

from notify_worker.config.environment import EnvironmentConfig
from notify_worker.config.models import AppConfig
from notify_worker.domain.models import ChannelCode
from notify_worker.logging import get_logger
from notify_worker.persistence.database import SessionScope, get_session

from .base import BaseChannel
from .email import EmailChannel
from .exceptions import ChannelConfigurationError
from .inapp import InAppChannel
from .sms import SmsChannel
from .whatsapp import WhatsAppChannel

logger = get_logger(__name__, component="dispatch")


def build_channel_registry(
    app_config: AppConfig,
    env_config: EnvironmentConfig,
    session_scope: SessionScope = get_session,
    session: Optional[requests.Session] = None,
) -> Dict[str, BaseChannel]:
    """Instantiate one dispatcher per channel code.

    Credentials are passed through as-is; a channel with missing credentials
    is still registered and reports a failed outcome when used.

    Args:
        app_config: Application configuration (provider HTTP settings)
        env_config: Environment configuration (provider credentials)
        session_scope: Session scope for the in-app store
        session: Optional shared requests.Session for the HTTP channels

    Returns:
        Mapping of channel code value to dispatcher

    Raises:
        ChannelConfigurationError: If a channel code has no dispatcher

    Example:
        >>> channels = build_channel_registry(app_config, env_config)
        >>> outcome = channels["sms"].send(request)
    """
    providers = app_config.providers
    http_options = {
        "base_url": providers.base_url,
        "timeout": providers.http_request_timeout,
        "user_agent": providers.user_agent,
        "session": session,
    }

    registry: Dict[str, BaseChannel] = {
        ChannelCode.EMAIL.value: EmailChannel(
            env_config.msg91_auth_key,
            sender_email=env_config.msg91_sender_email,
            sender_name=env_config.msg91_sender_name,
            domain=env_config.msg91_email_domain,
            **http_options,
        ),
        ChannelCode.SMS.value: SmsChannel(
            env_config.msg91_auth_key,
            sender_id=env_config.msg91_sender_id,
            route=providers.sms_route,
            country_code=providers.default_country_code,
            **http_options,
        ),
        ChannelCode.WHATSAPP.value: WhatsAppChannel(
            env_config.msg91_auth_key,
            integrated_number=env_config.msg91_whatsapp_number,
            country_code=providers.default_country_code,
            language=providers.whatsapp_language,
            **http_options,
        ),
        ChannelCode.INAPP.value: InAppChannel(session_scope=session_scope),
    }

    missing = [code.value for code in ChannelCode if code.value not in registry]
    if missing:
        raise ChannelConfigurationError(f"No dispatcher registered for: {', '.join(missing)}")

    unconfigured = [
        name
        for name, value in (
            ("MSG91_AUTH_KEY", env_config.msg91_auth_key),
            ("MSG91_SENDER_EMAIL", env_config.msg91_sender_email),
            ("MSG91_SENDER_ID", env_config.msg91_sender_id),
            ("MSG91_WHATSAPP_NUMBER", env_config.msg91_whatsapp_number),
        )
        if not value
    ]
    if unconfigured:
        logger.warning(
            f"Provider settings missing, affected channels will fail: {', '.join(unconfigured)}",
            extra={"event": "dispatch.registry.unconfigured", "missing": unconfigured},
        )

    logger.debug(
        "Channel registry built",
        extra={"event": "dispatch.registry.built", "channels": sorted(registry)},
    )
    return registry
