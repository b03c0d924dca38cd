"""Custom exceptions for delivery channels.

Dispatchers raise these internally and convert them into failed
DeliveryOutcome values at the send() boundary, so the consumer sees every
provider problem as an ordinary, retryable dispatch failure.
"""

from typing import Any, Optional


class ChannelError(Exception):
    """Base exception for all channel errors."""


class ChannelConfigurationError(ChannelError):
    """A required provider credential or setting is absent.

    Also raised at startup when the channel registry does not cover every
    channel code.
    """


class RecipientValidationError(ChannelError):
    """The destination address is missing or malformed for this channel."""


class ProviderResponseError(ChannelError):
    """The provider call failed or returned an unusable response.

    Covers non-2xx status codes, non-JSON bodies, timeouts and connection
    errors. ``response_body`` holds the raw provider text when there was one.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        response_body: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.response_body = response_body
