"""Template lookup with tenant-over-system shadowing."""

from typing import Optional

from notify_worker.logging import get_logger
from notify_worker.domain.models import Template
from notify_worker.persistence.database import SessionScope, get_session
from notify_worker.persistence.repositories import TemplateRepository

logger = get_logger(__name__, component="templates")


class TemplateResolver:
    """Resolves the active template for (event type, channel, tenant).

    A tenant's own template shadows the system template (tenant_id NULL) for
    the same event type and channel. Missing templates resolve to None.
    """

    def __init__(self, session_scope: SessionScope = get_session):
        self._session_scope = session_scope

    def resolve(self, event_type: str, channel: str, tenant_id: Optional[str]) -> Optional[Template]:
        with self._session_scope() as session:
            repo = TemplateRepository(session)

            if tenant_id:
                template = repo.find_active(event_type, channel, tenant_id)
                if template is not None:
                    logger.debug(
                        "Resolved tenant template",
                        extra={
                            "event": "template.resolved",
                            "template_key": template.template_key,
                            "scope": "tenant",
                        },
                    )
                    return template

            template = repo.find_active(event_type, channel, None)

        if template is None:
            logger.warning(
                f"No active template for {event_type}/{channel}",
                extra={
                    "event": "template.missing",
                    "source_type": event_type,
                    "channel": channel,
                    "tenant_id": tenant_id,
                },
            )
        else:
            logger.debug(
                "Resolved system template",
                extra={
                    "event": "template.resolved",
                    "template_key": template.template_key,
                    "scope": "system",
                },
            )
        return template
