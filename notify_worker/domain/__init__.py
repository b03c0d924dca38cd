"""Domain models for the notification dispatch worker."""

from .models import (
    DEFAULT_MAX_RETRIES,
    SETTLED_STATUSES,
    ChannelCode,
    DeadLetterRecord,
    DeliveryOutcome,
    DeliveryRequest,
    InAppNotification,
    Job,
    JobStatus,
    QueueEntry,
    StatusHistoryEntry,
    Template,
)

__all__ = [
    "DEFAULT_MAX_RETRIES",
    "SETTLED_STATUSES",
    "ChannelCode",
    "DeadLetterRecord",
    "DeliveryOutcome",
    "DeliveryRequest",
    "InAppNotification",
    "Job",
    "JobStatus",
    "QueueEntry",
    "StatusHistoryEntry",
    "Template",
]
