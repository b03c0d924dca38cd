"""Data access layer (repositories) for persistence operations.

Repositories wrap a session, return domain models, and translate
SQLAlchemy failures into PersistenceError subclasses.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from notify_worker.domain.models import (
    InAppNotification,
    Job,
    StatusHistoryEntry,
    Template,
)
from notify_worker.logging import get_logger
from notify_worker.utils.timestamps import to_storage, utc_now

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import InAppNotificationModel, JobModel, StatusHistoryModel, TemplateModel

logger = get_logger(__name__, component="repository")


class JobRepository:
    """Repository for job records."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, job_id: str) -> Optional[Job]:
        """Retrieve a job by id.

        Returns:
            Job domain model if found, None otherwise

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(JobModel, job_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving job {job_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve job: {e}") from e

    def add(self, job: Job) -> Job:
        """Insert a new job.

        Raises:
            DataIntegrityError: If a job with the same id exists
            PersistenceError: If database error occurs
        """
        now = utc_now()
        job = job.model_copy(update={
            "created_at": job.created_at or now,
            "updated_at": job.updated_at or now,
        })
        try:
            model = JobModel.from_domain(job)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except IntegrityError as e:
            self.session.rollback()
            raise DataIntegrityError(f"Job {job.id} already exists: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error inserting job {job.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to insert job: {e}") from e

    def update_fields(self, job_id: str, changes: Dict[str, Any]) -> Job:
        """Apply column changes to a job and return the updated record.

        Datetime values are converted to storage format. The key ``metadata``
        maps to the ``metadata`` column.

        Raises:
            RecordNotFoundError: If the job does not exist
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(JobModel, job_id)
            if model is None:
                raise RecordNotFoundError(f"Job not found: {job_id}")

            for key, value in changes.items():
                if isinstance(value, datetime):
                    value = to_storage(value)
                setattr(model, "metadata_" if key == "metadata" else key, value)

            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error updating job {job_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update job: {e}") from e

    def list_by_status(self, status_code: str, limit: int = 100) -> List[Job]:
        try:
            stmt = (
                select(JobModel)
                .where(JobModel.status_code == status_code)
                .order_by(JobModel.priority.desc(), JobModel.created_at.asc())
                .limit(limit)
            )
            return [model.to_domain() for model in self.session.execute(stmt).scalars()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing jobs with status {status_code}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list jobs: {e}") from e


class TemplateRepository:
    """Repository for rendering templates. Read-mostly."""

    def __init__(self, session: Session):
        self.session = session

    def find_active(
        self, source_type_code: str, channel_code: str, tenant_id: Optional[str]
    ) -> Optional[Template]:
        """Find the active template for an exact (event type, channel, tenant) key.

        Passing tenant_id=None matches only system templates.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            tenant_clause = (
                TemplateModel.tenant_id.is_(None)
                if tenant_id is None
                else TemplateModel.tenant_id == tenant_id
            )
            stmt = (
                select(TemplateModel)
                .where(
                    TemplateModel.source_type_code == source_type_code,
                    TemplateModel.channel_code == channel_code,
                    tenant_clause,
                    TemplateModel.is_active.is_(True),
                )
                .order_by(TemplateModel.id.desc())
                .limit(1)
            )
            model = self.session.execute(stmt).scalar_one_or_none()
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(
                f"Error retrieving template {source_type_code}/{channel_code}: {e}",
                exc_info=True,
            )
            raise PersistenceError(f"Failed to retrieve template: {e}") from e

    def add(self, template: Template) -> Template:
        try:
            model = TemplateModel.from_domain(template)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error inserting template {template.template_key}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to insert template: {e}") from e


class InAppNotificationRepository:
    """Repository for in-app notifications."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        user_id: str,
        tenant_id: str,
        title: str,
        body: str,
        metadata: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> InAppNotification:
        """Insert an unread notification and return it with its id."""
        try:
            model = InAppNotificationModel(
                id=uuid4().hex,
                user_id=user_id,
                tenant_id=tenant_id,
                title=title,
                body=body,
                metadata_=metadata or {},
                is_read=False,
                created_at=to_storage(created_at or utc_now()),
            )
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error creating in-app notification for {user_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to create in-app notification: {e}") from e

    def mark_as_read(self, notification_id: str, read_at: Optional[datetime] = None) -> bool:
        """Mark a notification read. Returns False if it was already read or missing."""
        try:
            result = self.session.execute(
                update(InAppNotificationModel)
                .where(
                    InAppNotificationModel.id == notification_id,
                    InAppNotificationModel.is_read.is_(False),
                )
                .values(is_read=True, read_at=to_storage(read_at or utc_now()))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1
        except SQLAlchemyError as e:
            logger.error(f"Error marking notification {notification_id} read: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update in-app notification: {e}") from e

    def unread_count(self, user_id: str, tenant_id: str) -> int:
        try:
            stmt = select(func.count()).select_from(InAppNotificationModel).where(
                InAppNotificationModel.user_id == user_id,
                InAppNotificationModel.tenant_id == tenant_id,
                InAppNotificationModel.is_read.is_(False),
            )
            return int(self.session.execute(stmt).scalar_one())
        except SQLAlchemyError as e:
            logger.error(f"Error counting notifications for {user_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to count in-app notifications: {e}") from e

    def list_for_user(
        self, user_id: str, tenant_id: str, unread_only: bool = False, limit: int = 50
    ) -> List[InAppNotification]:
        try:
            stmt = select(InAppNotificationModel).where(
                InAppNotificationModel.user_id == user_id,
                InAppNotificationModel.tenant_id == tenant_id,
            )
            if unread_only:
                stmt = stmt.where(InAppNotificationModel.is_read.is_(False))
            stmt = stmt.order_by(InAppNotificationModel.created_at.desc()).limit(limit)
            return [model.to_domain() for model in self.session.execute(stmt).scalars()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing notifications for {user_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list in-app notifications: {e}") from e


class StatusHistoryRepository:
    """Append-only log of job status transitions."""

    def __init__(self, session: Session):
        self.session = session

    def record(
        self,
        job_id: str,
        from_status_code: Optional[str],
        to_status_code: str,
        reason: Optional[str] = None,
        performed_by: str = "worker",
        created_at: Optional[datetime] = None,
    ) -> StatusHistoryEntry:
        try:
            model = StatusHistoryModel(
                job_id=job_id,
                from_status_code=from_status_code,
                to_status_code=to_status_code,
                reason=reason,
                performed_by=performed_by,
                created_at=to_storage(created_at or utc_now()),
            )
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to record status history: {e}") from e

    def list_for_job(self, job_id: str) -> List[StatusHistoryEntry]:
        try:
            stmt = (
                select(StatusHistoryModel)
                .where(StatusHistoryModel.job_id == job_id)
                .order_by(StatusHistoryModel.id.asc())
            )
            return [model.to_domain() for model in self.session.execute(stmt).scalars()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing history for job {job_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list status history: {e}") from e
