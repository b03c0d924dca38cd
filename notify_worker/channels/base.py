"""Base classes shared by the delivery channels.

Every channel implements the same contract: ``send(DeliveryRequest)`` returns
a DeliveryOutcome and never raises ChannelError. HTTP-backed channels
additionally share request handling against the provider API.
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from notify_worker.domain.models import ChannelCode, DeliveryOutcome, DeliveryRequest
from notify_worker.logging import get_logger

from .exceptions import ChannelConfigurationError, ChannelError, ProviderResponseError, RecipientValidationError

logger = get_logger(__name__, component="dispatch")


def normalize_mobile(number: Optional[str], country_code: str) -> str:
    """Canonical country-code-prefixed form of a phone number.

    Non-digits are stripped; the country code is prepended unless the digits
    already start with it.

    Example:
        >>> normalize_mobile("+91 98765-43210", "91")
        '919876543210'
        >>> normalize_mobile("98765 43210", "91")
        '919876543210'

    Raises:
        RecipientValidationError: If no digits remain
    """
    digits = re.sub(r"\D", "", number or "")
    if not digits:
        raise RecipientValidationError("Mobile number is required")
    if digits.startswith(country_code):
        return digits
    return f"{country_code}{digits}"


class BaseChannel(ABC):
    """A delivery channel.

    Subclasses implement _deliver() and may raise ChannelError subclasses
    from it; send() turns those into failed outcomes.
    """

    code: ChannelCode

    def send(self, request: DeliveryRequest) -> DeliveryOutcome:
        """Deliver one notification."""
        try:
            outcome = self._deliver(request)
        except ChannelError as e:
            logger.warning(
                f"{self.code.value} dispatch failed: {e}",
                extra={
                    "event": f"dispatch.{self.code.value}.failed",
                    "error_type": type(e).__name__,
                },
            )
            return DeliveryOutcome.failed(
                str(e), provider_response=getattr(e, "response_body", None)
            )

        if outcome.success:
            logger.info(
                f"{self.code.value} notification sent",
                extra={
                    "event": f"dispatch.{self.code.value}.sent",
                    "provider_message_id": outcome.provider_message_id,
                },
            )
        else:
            logger.warning(
                f"{self.code.value} provider rejected notification",
                extra={
                    "event": f"dispatch.{self.code.value}.rejected",
                    "error": outcome.error,
                },
            )
        return outcome

    @abstractmethod
    def _deliver(self, request: DeliveryRequest) -> DeliveryOutcome:
        """Channel-specific delivery."""

    @staticmethod
    def _require(**settings: Optional[str]) -> None:
        """Raise ChannelConfigurationError naming every unset setting."""
        missing = [name for name, value in settings.items() if not value]
        if missing:
            raise ChannelConfigurationError(f"{', '.join(missing)} is not configured")


class HttpChannel(BaseChannel):
    """Channel that posts JSON to the provider API with an ``authkey`` header.

    Attributes:
        auth_key: Provider API key
        base_url: API root, endpoints are appended to it
        timeout: Request timeout in seconds
    """

    endpoint: str = ""

    def __init__(
        self,
        auth_key: Optional[str],
        base_url: str = "https://control.msg91.com/api/v5",
        timeout: int = 30,
        user_agent: str = "NotificationDispatchWorker/1.0",
        session: Optional[requests.Session] = None,
    ) -> None:
        self.auth_key = auth_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        self._session = session or requests.Session()
        self._session.headers.update({
            "User-Agent": user_agent,
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.endpoint}"

    def _post_json(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST payload to the channel endpoint and return the decoded JSON body.

        Raises:
            ProviderResponseError: On network errors, timeouts, non-2xx
                status or a body that is not a JSON object
        """
        url = self.url
        logger.debug(
            f"HTTP POST to {url}",
            extra={"event": f"dispatch.{self.code.value}.request", "url": url, "timeout": self.timeout},
        )

        try:
            response = self._session.post(
                url,
                json=payload,
                headers={"authkey": self.auth_key or ""},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ProviderResponseError(
                f"Request to {url} timed out after {self.timeout} seconds", url=url
            ) from e
        except requests.exceptions.RequestException as e:
            raise ProviderResponseError(f"Request to {url} failed: {e}", url=url) from e

        body_text = response.text
        if not 200 <= response.status_code < 300:
            raise ProviderResponseError(
                f"HTTP {response.status_code} from provider: {body_text}",
                status_code=response.status_code,
                url=url,
                response_body=body_text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderResponseError(
                f"Provider returned non-JSON response: {body_text}",
                status_code=response.status_code,
                url=url,
                response_body=body_text,
            ) from e

        if not isinstance(data, dict):
            raise ProviderResponseError(
                f"Unexpected provider response: {body_text}",
                status_code=response.status_code,
                url=url,
                response_body=body_text,
            )
        return data

    @staticmethod
    def _raw(data: Any) -> str:
        return json.dumps(data, ensure_ascii=False, default=str)
