"""Database schema definition and ORM models.

Defines the SQLAlchemy tables for jobs, templates, the work queue, the
dead-letter archive, in-app notifications and job status history, with
conversions to the domain models. Timestamps are stored as fixed-width
ISO-8601 strings (see notify_worker.utils.timestamps).
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from notify_worker.domain.models import (
    DeadLetterRecord,
    InAppNotification,
    Job,
    QueueEntry,
    StatusHistoryEntry,
    Template,
)
from notify_worker.logging import get_logger
from notify_worker.utils.timestamps import from_storage, to_storage

logger = get_logger(__name__, component="database")

Base = declarative_base()

_JOB_TIMESTAMPS = (
    "scheduled_at",
    "created_at",
    "updated_at",
    "status_changed_at",
    "executed_at",
    "completed_at",
    "last_retry_at",
    "next_retry_at",
)


class JobModel(Base):
    """ORM model for the jobs table."""

    __tablename__ = "jobs"

    id = Column(String(64), primary_key=True)
    tenant_id = Column(String(64), nullable=False)
    is_live = Column(Boolean, nullable=False, default=True)

    source_type_code = Column(String(100), nullable=False)
    event_type_code = Column(String(100), nullable=False, default="notification")
    channel_code = Column(String(32), nullable=False)
    priority = Column(Integer, nullable=False, default=5)

    recipient_type = Column(String(32), nullable=True)
    recipient_id = Column(String(64), nullable=True)
    recipient_name = Column(String(255), nullable=True)
    recipient_contact = Column(String(255), nullable=True)

    payload = Column(JSON, nullable=False, default=dict)
    template_key = Column(String(100), nullable=True)
    template_variables = Column(JSON, nullable=False, default=dict)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)

    status_code = Column(String(32), nullable=False, default="created")
    previous_status_code = Column(String(32), nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    max_retries = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    provider_message_id = Column(String(255), nullable=True)
    provider_response = Column(JSON, nullable=True)

    scheduled_at = Column(String(32), nullable=True)
    created_at = Column(String(32), nullable=True)
    updated_at = Column(String(32), nullable=True)
    status_changed_at = Column(String(32), nullable=True)
    executed_at = Column(String(32), nullable=True)
    completed_at = Column(String(32), nullable=True)
    last_retry_at = Column(String(32), nullable=True)
    next_retry_at = Column(String(32), nullable=True)

    __table_args__ = (
        Index("idx_jobs_status_scheduled", "status_code", "scheduled_at"),
        Index("idx_jobs_status_next_retry", "status_code", "next_retry_at"),
        Index("idx_jobs_tenant", "tenant_id"),
    )

    def to_domain(self) -> Job:
        fields = {name: from_storage(getattr(self, name)) for name in _JOB_TIMESTAMPS}
        return Job(
            id=self.id,
            tenant_id=self.tenant_id,
            is_live=bool(self.is_live),
            source_type_code=self.source_type_code,
            event_type_code=self.event_type_code,
            channel_code=self.channel_code,
            priority=self.priority,
            recipient_type=self.recipient_type,
            recipient_id=self.recipient_id,
            recipient_name=self.recipient_name,
            recipient_contact=self.recipient_contact,
            payload=self.payload or {},
            template_key=self.template_key,
            template_variables=self.template_variables or {},
            metadata=self.metadata_ or {},
            status_code=self.status_code,
            previous_status_code=self.previous_status_code,
            retry_count=self.retry_count or 0,
            max_retries=self.max_retries,
            error_message=self.error_message,
            provider_message_id=self.provider_message_id,
            provider_response=self.provider_response,
            **fields,
        )

    @classmethod
    def from_domain(cls, job: Job) -> "JobModel":
        fields = {name: to_storage(getattr(job, name)) for name in _JOB_TIMESTAMPS}
        return cls(
            id=job.id,
            tenant_id=job.tenant_id,
            is_live=job.is_live,
            source_type_code=job.source_type_code,
            event_type_code=job.event_type_code,
            channel_code=job.channel_code,
            priority=job.priority,
            recipient_type=job.recipient_type,
            recipient_id=job.recipient_id,
            recipient_name=job.recipient_name,
            recipient_contact=job.recipient_contact,
            payload=job.payload,
            template_key=job.template_key,
            template_variables=job.template_variables,
            metadata_=job.metadata,
            status_code=job.status_code,
            previous_status_code=job.previous_status_code,
            retry_count=job.retry_count,
            max_retries=job.max_retries,
            error_message=job.error_message,
            provider_message_id=job.provider_message_id,
            provider_response=job.provider_response,
            **fields,
        )

    def to_queue_message(self, now_iso: str) -> dict:
        """Thin queue payload pointing back at this job."""
        return {
            "jtd_id": self.id,
            "tenant_id": self.tenant_id,
            "event_type_code": self.event_type_code,
            "channel_code": self.channel_code,
            "source_type_code": self.source_type_code,
            "priority": self.priority,
            "scheduled_at": self.scheduled_at,
            "recipient_contact": self.recipient_contact,
            "is_live": bool(self.is_live),
            "created_at": self.created_at or now_iso,
        }


class TemplateModel(Base):
    """ORM model for the templates table."""

    __tablename__ = "templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=True)
    template_key = Column(String(100), nullable=False)
    name = Column(String(255), nullable=True)
    source_type_code = Column(String(100), nullable=False)
    channel_code = Column(String(32), nullable=False)
    subject = Column(Text, nullable=True)
    content = Column(Text, nullable=False, default="")
    content_html = Column(Text, nullable=True)
    provider_template_id = Column(String(255), nullable=True)
    variables = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("idx_templates_lookup", "source_type_code", "channel_code", "tenant_id", "is_active"),
    )

    def to_domain(self) -> Template:
        return Template(
            id=self.id,
            tenant_id=self.tenant_id,
            template_key=self.template_key,
            name=self.name,
            source_type_code=self.source_type_code,
            channel_code=self.channel_code,
            subject=self.subject,
            content=self.content or "",
            content_html=self.content_html,
            provider_template_id=self.provider_template_id,
            variables=list(self.variables or []),
            is_active=bool(self.is_active),
        )

    @classmethod
    def from_domain(cls, template: Template) -> "TemplateModel":
        return cls(
            id=template.id,
            tenant_id=template.tenant_id,
            template_key=template.template_key,
            name=template.name,
            source_type_code=template.source_type_code,
            channel_code=template.channel_code,
            subject=template.subject,
            content=template.content,
            content_html=template.content_html,
            provider_template_id=template.provider_template_id,
            variables=list(template.variables),
            is_active=template.is_active,
        )


class QueueMessageModel(Base):
    """ORM model for live work-queue entries.

    ``job_id`` is unique: a job has at most one live entry, which makes
    promotion idempotent at the store level.
    """

    __tablename__ = "queue_messages"

    msg_id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(String(64), nullable=False)
    read_ct = Column(Integer, nullable=False, default=0)
    enqueued_at = Column(String(32), nullable=False)
    vt = Column(String(32), nullable=False)
    message = Column(JSON, nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint("job_id", name="uq_queue_messages_job_id"),
        Index("idx_queue_messages_vt", "vt"),
    )

    def to_domain(self) -> QueueEntry:
        return QueueEntry(
            lease_id=self.msg_id,
            read_count=self.read_ct,
            enqueued_at=from_storage(self.enqueued_at),
            visible_at=from_storage(self.vt),
            payload=dict(self.message or {}),
        )


class DeadLetterModel(Base):
    """ORM model for the append-only dead-letter archive."""

    __tablename__ = "dead_letters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    original_msg_id = Column(Integer, nullable=False)
    job_id = Column(String(64), nullable=True)
    message = Column(JSON, nullable=False, default=dict)
    error_message = Column(Text, nullable=True)
    read_ct = Column(Integer, nullable=False, default=0)
    archived_at = Column(String(32), nullable=False)

    __table_args__ = (Index("idx_dead_letters_archived_at", "archived_at"),)

    def to_domain(self) -> DeadLetterRecord:
        return DeadLetterRecord(
            id=self.id,
            original_msg_id=self.original_msg_id,
            job_id=self.job_id,
            message=dict(self.message or {}),
            error_message=self.error_message,
            read_count=self.read_ct,
            archived_at=from_storage(self.archived_at),
        )


class InAppNotificationModel(Base):
    """ORM model for in-app notifications."""

    __tablename__ = "inapp_notifications"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=False)
    tenant_id = Column(String(64), nullable=False)
    title = Column(Text, nullable=False)
    body = Column(Text, nullable=False, default="")
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(String(32), nullable=True)
    created_at = Column(String(32), nullable=False)

    __table_args__ = (Index("idx_inapp_user_unread", "user_id", "tenant_id", "is_read"),)

    def to_domain(self) -> InAppNotification:
        return InAppNotification(
            id=self.id,
            user_id=self.user_id,
            tenant_id=self.tenant_id,
            title=self.title,
            body=self.body or "",
            metadata=self.metadata_ or {},
            is_read=bool(self.is_read),
            read_at=from_storage(self.read_at),
            created_at=from_storage(self.created_at),
        )


class StatusHistoryModel(Base):
    """ORM model for job status transitions."""

    __tablename__ = "job_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(String(64), nullable=False)
    from_status_code = Column(String(32), nullable=True)
    to_status_code = Column(String(32), nullable=False)
    reason = Column(Text, nullable=True)
    performed_by = Column(String(64), nullable=False, default="worker")
    created_at = Column(String(32), nullable=False)

    __table_args__ = (Index("idx_status_history_job", "job_id", "created_at"),)

    def to_domain(self) -> StatusHistoryEntry:
        return StatusHistoryEntry(
            id=self.id,
            job_id=self.job_id,
            from_status_code=self.from_status_code,
            to_status_code=self.to_status_code,
            reason=self.reason,
            performed_by=self.performed_by,
            created_at=from_storage(self.created_at),
        )


def create_schema(engine: Engine) -> None:
    """Create any missing tables. Idempotent."""
    Base.metadata.create_all(engine, checkfirst=True)
    logger.debug(
        "Database schema ensured",
        extra={"event": "database.schema.ensured", "tables": sorted(Base.metadata.tables)},
    )
