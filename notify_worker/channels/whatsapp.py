"""Chat-app delivery (WhatsApp) through pre-registered provider templates."""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from notify_worker.domain.models import ChannelCode, DeliveryOutcome, DeliveryRequest

from .base import HttpChannel, normalize_mobile
from .exceptions import ChannelConfigurationError

# Templates whose body parameters have a fixed positional order
POSITIONAL_FIELDS: Dict[str, Tuple[str, ...]] = {
    "user_invitation": ("recipient_name", "inviter_name", "workspace_name", "invitation_link"),
}


def body_parameters(
    template_name: str,
    variables: Mapping[str, str],
    declared: Sequence[str] = (),
) -> List[str]:
    """Positional body parameter values for a template.

    Templates listed in POSITIONAL_FIELDS take their fields in that order.
    Otherwise the declared variable names are used, in order, and undeclared
    values are left out. Absent fields become empty strings so slot positions
    never shift. With nothing declared every variable is sent in order.
    """
    fields = POSITIONAL_FIELDS.get(template_name) or tuple(declared)
    if fields:
        return [str(variables.get(name, "")) for name in fields]
    return [str(value) for value in variables.values()]


class WhatsAppChannel(HttpChannel):
    """Sends template messages to a WhatsApp number."""

    code = ChannelCode.WHATSAPP
    endpoint = "/whatsapp/whatsapp-outbound-message/"

    def __init__(
        self,
        auth_key: Optional[str],
        integrated_number: Optional[str],
        country_code: str = "91",
        language: str = "en",
        **http_options: Any,
    ) -> None:
        super().__init__(auth_key, **http_options)
        self.integrated_number = integrated_number
        self.country_code = country_code
        self.language = language

    def _deliver(self, request: DeliveryRequest) -> DeliveryOutcome:
        self._require(MSG91_AUTH_KEY=self.auth_key, MSG91_WHATSAPP_NUMBER=self.integrated_number)
        mobile = normalize_mobile(request.to, self.country_code)

        data = self._post_json(self.build_payload(request, mobile))

        if data.get("type") == "success":
            nested = data.get("data") if isinstance(data.get("data"), dict) else {}
            return DeliveryOutcome.sent(nested.get("id") or data.get("request_id"), provider_response=data)
        return DeliveryOutcome.failed(
            data.get("message") or "Failed to send WhatsApp message", provider_response=data
        )

    @staticmethod
    def template_name(request: DeliveryRequest) -> str:
        name = (
            request.provider_template_id
            or request.metadata.get("whatsapp_template")
            or request.source_type
        )
        if not name:
            raise ChannelConfigurationError("WhatsApp template name is required")
        return name

    def build_payload(self, request: DeliveryRequest, mobile: str) -> Dict[str, Any]:
        name = self.template_name(request)
        template: Dict[str, Any] = {
            "name": name,
            "language": {"code": self.language, "policy": "deterministic"},
        }

        components = []
        parameters = body_parameters(name, request.template_variables, request.declared_variables)
        if parameters:
            components.append({
                "type": "body",
                "parameters": [{"type": "text", "text": value} for value in parameters],
            })

        media_url = request.metadata.get("media_url")
        if media_url:
            components.append({
                "type": "header",
                "parameters": [{"type": "image", "image": {"link": media_url}}],
            })

        if components:
            template["components"] = components

        return {
            "integrated_number": self.integrated_number,
            "content_type": "template",
            "payload": {"to": mobile, "type": "template", "template": template},
        }
