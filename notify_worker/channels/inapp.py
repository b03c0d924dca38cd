"""In-app delivery: a row in the in-app notification store."""

from datetime import datetime
from typing import Callable

from notify_worker.domain.models import ChannelCode, DeliveryOutcome, DeliveryRequest
from notify_worker.persistence.database import SessionScope, get_session
from notify_worker.persistence.exceptions import PersistenceError
from notify_worker.persistence.repositories import InAppNotificationRepository
from notify_worker.utils.timestamps import utc_now

from .base import BaseChannel
from .exceptions import ChannelError, RecipientValidationError


class InAppChannel(BaseChannel):
    """Writes an unread notification keyed by user id and tenant id.

    The row id is reported as the provider message id.
    """

    code = ChannelCode.INAPP

    def __init__(
        self,
        session_scope: SessionScope = get_session,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_scope = session_scope
        self._clock = clock

    def _deliver(self, request: DeliveryRequest) -> DeliveryOutcome:
        if not request.to:
            raise RecipientValidationError("User ID is required for in-app notifications")
        if not request.tenant_id:
            raise RecipientValidationError("Tenant ID is required for in-app notifications")

        try:
            with self._session_scope() as session:
                notification = InAppNotificationRepository(session).create(
                    user_id=request.to,
                    tenant_id=request.tenant_id,
                    title=request.subject or request.source_type or "Notification",
                    body=request.body,
                    metadata=request.metadata,
                    created_at=self._clock(),
                )
        except PersistenceError as e:
            raise ChannelError(f"Failed to store in-app notification: {e}") from e

        return DeliveryOutcome.sent(notification.id)
