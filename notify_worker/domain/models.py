"""Core domain models for jobs, templates, queue entries and deliveries.

This module defines the data structures shared by every layer:
- Job: the durable record of one notification to deliver
- Template: tenant- or system-scoped content for an (event type, channel) pair
- QueueEntry: a leased, thin pointer to a Job
- DeliveryRequest / DeliveryOutcome: the uniform channel contract
- InAppNotification, DeadLetterRecord, StatusHistoryEntry: stored side records
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from notify_worker.utils.timestamps import ensure_utc

DEFAULT_MAX_RETRIES = 3


class JobStatus(str, Enum):
    """Job lifecycle states.

    The worker moves jobs through scheduled/queued/processing/sent/failed.
    The remaining values are written by other parts of the system (upstream
    creation, cancellation, provider webhooks) and are tolerated as-is.
    """

    CREATED = "created"
    PENDING = "pending"
    SCHEDULED = "scheduled"
    QUEUED = "queued"
    PROCESSING = "processing"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Statuses for which a redelivered queue entry must not trigger another send
SETTLED_STATUSES = frozenset({
    JobStatus.SENT.value,
    JobStatus.DELIVERED.value,
    JobStatus.READ.value,
    JobStatus.CANCELLED.value,
})


class ChannelCode(str, Enum):
    """Closed set of delivery channels."""

    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"
    INAPP = "inapp"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ChannelCode"]:
        """Return the matching channel, or None for unknown codes."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return None


class _UTCModel(BaseModel):
    """Base model that normalizes every datetime field to aware UTC."""

    @field_validator("*", mode="after")
    @classmethod
    def _normalize_datetimes(cls, v: Any) -> Any:
        if isinstance(v, datetime):
            return ensure_utc(v)
        return v


class Job(_UTCModel):
    """One notification to be delivered to one recipient over one channel."""

    id: str = Field(..., min_length=1)
    tenant_id: str = Field(..., min_length=1)
    is_live: bool = True

    # Routing
    source_type_code: str = Field(..., min_length=1, description="Event type used for template lookup")
    event_type_code: str = "notification"
    channel_code: str
    priority: int = 5

    # Recipient
    recipient_type: Optional[str] = None
    recipient_id: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_contact: Optional[str] = None

    # Content inputs
    payload: Dict[str, Any] = Field(default_factory=dict)
    template_key: Optional[str] = None
    template_variables: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    # Lifecycle
    status_code: str = JobStatus.CREATED.value
    previous_status_code: Optional[str] = None
    retry_count: int = Field(0, ge=0)
    max_retries: Optional[int] = Field(None, ge=0)
    error_message: Optional[str] = None
    provider_message_id: Optional[str] = None
    provider_response: Optional[Any] = None

    scheduled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    status_changed_at: Optional[datetime] = None
    executed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_retry_at: Optional[datetime] = None
    next_retry_at: Optional[datetime] = None

    @field_validator("channel_code")
    @classmethod
    def normalize_channel(cls, v: str) -> str:
        return v.strip().lower()

    def effective_max_retries(self, default: int = DEFAULT_MAX_RETRIES) -> int:
        """Retry budget for this job, falling back to the default when unset."""
        return self.max_retries if self.max_retries is not None else default

    @property
    def recipient_data(self) -> Dict[str, Any]:
        data = self.payload.get("recipient_data")
        return data if isinstance(data, dict) else {}

    @property
    def template_data(self) -> Dict[str, Any]:
        data = self.payload.get("template_data")
        return data if isinstance(data, dict) else {}

    def render_variables(self) -> Dict[str, str]:
        """Variables available to templates, as strings.

        ``payload.template_data`` is overlaid by ``template_variables``, and
        ``recipient_name`` is appended when neither provides it. Insertion
        order is preserved. None values are dropped so their placeholders stay
        visible in the output.
        """
        merged: Dict[str, Any] = dict(self.template_data)
        merged.update(self.template_variables or {})
        if self.recipient_name and merged.get("recipient_name") is None:
            merged["recipient_name"] = self.recipient_name
        return {key: str(value) for key, value in merged.items() if value is not None}

    def recipient_address(self, channel: Optional[ChannelCode] = None) -> Optional[str]:
        """Destination address for the given channel.

        Looks in ``payload.recipient_data`` first, then the job's own
        recipient columns.
        """
        channel = channel or ChannelCode.parse(self.channel_code)
        data = self.recipient_data

        if channel == ChannelCode.EMAIL:
            candidates = [data.get("email"), self.recipient_contact]
        elif channel in (ChannelCode.SMS, ChannelCode.WHATSAPP):
            candidates = [data.get("mobile"), data.get("phone"), self.recipient_contact]
        elif channel == ChannelCode.INAPP:
            candidates = [data.get("user_id"), self.recipient_id]
        else:
            candidates = [self.recipient_contact]

        for candidate in candidates:
            if candidate is not None and str(candidate).strip():
                return str(candidate).strip()
        return None


class Template(_UTCModel):
    """Rendering template for an (event type, channel, tenant-or-system) key."""

    id: Optional[int] = None
    tenant_id: Optional[str] = None
    template_key: str
    name: Optional[str] = None
    source_type_code: str
    channel_code: str
    subject: Optional[str] = None
    content: str = ""
    content_html: Optional[str] = None
    provider_template_id: Optional[str] = None
    variables: List[str] = Field(default_factory=list, description="Declared variable names, in order")
    is_active: bool = True

    @property
    def is_system(self) -> bool:
        return self.tenant_id is None


class QueueEntry(_UTCModel):
    """A leased queue message pointing at a Job."""

    lease_id: int
    read_count: int = 0
    enqueued_at: datetime
    visible_at: datetime
    payload: Dict[str, Any] = Field(default_factory=dict)

    @property
    def job_id(self) -> Optional[str]:
        value = self.payload.get("jtd_id") or self.payload.get("job_id")
        return str(value) if value else None


class DeliveryRequest(BaseModel):
    """Uniform input to every channel dispatcher."""

    to: Optional[str] = None
    to_name: Optional[str] = None
    subject: Optional[str] = None
    body: str = ""
    body_html: Optional[str] = None
    provider_template_id: Optional[str] = None
    template_variables: Dict[str, str] = Field(default_factory=dict)
    declared_variables: List[str] = Field(default_factory=list, description="Template variable names, in order")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    tenant_id: Optional[str] = None
    source_type: Optional[str] = None
    job_id: Optional[str] = None


class DeliveryOutcome(BaseModel):
    """Result of one dispatch attempt."""

    success: bool
    provider_message_id: Optional[str] = None
    error: Optional[str] = None
    provider_response: Optional[Any] = None

    @classmethod
    def sent(cls, provider_message_id: Optional[str], provider_response: Any = None) -> "DeliveryOutcome":
        return cls(success=True, provider_message_id=provider_message_id, provider_response=provider_response)

    @classmethod
    def failed(cls, error: str, provider_response: Any = None) -> "DeliveryOutcome":
        return cls(success=False, error=error, provider_response=provider_response)


class InAppNotification(_UTCModel):
    """Notification row read by the application UI."""

    id: Optional[str] = None
    user_id: str
    tenant_id: str
    title: str
    body: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class DeadLetterRecord(_UTCModel):
    """Archived queue message for a job that exhausted its retries."""

    id: int
    original_msg_id: int
    job_id: Optional[str] = None
    message: Dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    read_count: int = 0
    archived_at: datetime


class StatusHistoryEntry(_UTCModel):
    """One recorded job status transition."""

    id: Optional[int] = None
    job_id: str
    from_status_code: Optional[str] = None
    to_status_code: str
    reason: Optional[str] = None
    performed_by: str = "worker"
    created_at: Optional[datetime] = None
