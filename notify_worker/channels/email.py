"""Email delivery through the provider's email API."""

from typing import Any, Dict, Optional

from email_validator import EmailNotValidError, validate_email

from notify_worker.domain.models import ChannelCode, DeliveryOutcome, DeliveryRequest

from .base import HttpChannel
from .exceptions import RecipientValidationError


class EmailChannel(HttpChannel):
    """Sends email, either through a registered provider template or inline.

    With a provider template id the provider renders the message from the
    template variables; otherwise the rendered subject and body (rich
    preferred over plain) are sent inline.
    """

    code = ChannelCode.EMAIL
    endpoint = "/email/send"

    def __init__(
        self,
        auth_key: Optional[str],
        sender_email: Optional[str],
        sender_name: Optional[str],
        domain: Optional[str] = None,
        **http_options: Any,
    ) -> None:
        super().__init__(auth_key, **http_options)
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.domain = domain

    def _deliver(self, request: DeliveryRequest) -> DeliveryOutcome:
        self._require(
            MSG91_AUTH_KEY=self.auth_key,
            MSG91_SENDER_EMAIL=self.sender_email,
            MSG91_SENDER_NAME=self.sender_name,
        )
        address = self._validate_recipient(request.to)

        data = self._post_json(self.build_payload(request, address))

        if data.get("type") == "success" or data.get("status") == "success":
            nested = data.get("data") if isinstance(data.get("data"), dict) else {}
            message_id = data.get("request_id") or nested.get("request_id") or data.get("message_id")
            return DeliveryOutcome.sent(message_id, provider_response=data)

        return DeliveryOutcome.failed(f"Provider rejected email: {self._raw(data)}", provider_response=data)

    def build_payload(self, request: DeliveryRequest, address: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "recipients": [
                {
                    "to": [{"name": request.to_name or address.split("@")[0], "email": address}],
                    "variables": dict(request.template_variables),
                }
            ],
            "from": {"name": self.sender_name, "email": self.sender_email},
        }
        if self.domain:
            payload["domain"] = self.domain

        if request.provider_template_id:
            payload["template_id"] = request.provider_template_id
        else:
            payload["subject"] = request.subject or f"Notification: {request.source_type or 'update'}"
            payload["body"] = request.body_html or request.body
        return payload

    @staticmethod
    def _validate_recipient(address: Optional[str]) -> str:
        if not address:
            raise RecipientValidationError("Recipient email is required")
        try:
            return validate_email(address, check_deliverability=False).normalized
        except EmailNotValidError as e:
            raise RecipientValidationError(f"Invalid recipient email '{address}': {e}") from e
