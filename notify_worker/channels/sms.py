"""SMS delivery through the provider's flow API."""

from typing import Any, Dict, Optional

from notify_worker.domain.models import ChannelCode, DeliveryOutcome, DeliveryRequest

from .base import HttpChannel, normalize_mobile


class SmsChannel(HttpChannel):
    """Sends plain-text SMS, optionally through a registered flow template."""

    code = ChannelCode.SMS
    endpoint = "/flow/"

    def __init__(
        self,
        auth_key: Optional[str],
        sender_id: Optional[str],
        route: str = "4",
        country_code: str = "91",
        **http_options: Any,
    ) -> None:
        super().__init__(auth_key, **http_options)
        self.sender_id = sender_id
        self.route = route
        self.country_code = country_code

    def _deliver(self, request: DeliveryRequest) -> DeliveryOutcome:
        self._require(MSG91_AUTH_KEY=self.auth_key, MSG91_SENDER_ID=self.sender_id)
        mobile = normalize_mobile(request.to, self.country_code)

        data = self._post_json(self.build_payload(request, mobile))

        if data.get("type") == "success":
            return DeliveryOutcome.sent(data.get("request_id"), provider_response=data)
        return DeliveryOutcome.failed(
            data.get("message") or "Failed to send SMS", provider_response=data
        )

    def build_payload(self, request: DeliveryRequest, mobile: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "sender": self.sender_id,
            "route": self.route,
            "country": self.country_code,
            "sms": [{"message": request.body, "to": [mobile]}],
        }

        template_id = request.provider_template_id or request.metadata.get("template_id")
        if template_id:
            payload["template_id"] = template_id
            variables = request.template_variables or request.metadata.get("variables")
            if variables:
                payload["sms"][0]["variables"] = dict(variables)
        return payload
