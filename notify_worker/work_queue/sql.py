"""SQLAlchemy-backed queue service.

Entries live in ``queue_messages``. A lease is taken by moving an entry's
visibility timestamp (``vt``) into the future with a conditional UPDATE that
only succeeds while the entry is still visible, so two consumers racing for
the same entry cannot both win. On PostgreSQL the candidate scan also uses
``FOR UPDATE SKIP LOCKED``.
"""

from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Iterator, List, Optional

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notify_worker.domain.models import (
    DEFAULT_MAX_RETRIES,
    DeadLetterRecord,
    JobStatus,
    QueueEntry,
)
from notify_worker.logging import get_logger
from notify_worker.persistence.database import SessionScope, get_session
from notify_worker.persistence.exceptions import PersistenceError
from notify_worker.persistence.schema import (
    DeadLetterModel,
    JobModel,
    QueueMessageModel,
    StatusHistoryModel,
)
from notify_worker.utils.timestamps import from_storage, to_storage, utc_now

from .base import QueueMetrics, QueueService
from .exceptions import QueueError, QueueUnavailableError

logger = get_logger(__name__, component="queue")

# Dialects with INSERT ... ON CONFLICT DO NOTHING
_CONFLICT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class SqlQueueService(QueueService):
    """Queue service over the relational store."""

    def __init__(
        self,
        session_scope: SessionScope = get_session,
        clock: Callable[[], datetime] = utc_now,
        promotion_limit: int = 100,
        default_max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        self._session_scope = session_scope
        self._clock = clock
        self.promotion_limit = promotion_limit
        self.default_max_retries = default_max_retries

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        try:
            with self._session_scope() as session:
                yield session
        except QueueError:
            raise
        except (SQLAlchemyError, PersistenceError) as e:
            logger.error(
                f"Queue {operation} failed: {e}",
                extra={"event": f"queue.{operation}.failed", "error_type": type(e).__name__},
            )
            raise QueueUnavailableError(f"Queue {operation} failed: {e}") from e

    def enqueue(self, job_id: str, delay_seconds: int = 0) -> Optional[int]:
        """Put a job on the queue, visible after delay_seconds.

        Raises:
            QueueError: If the job does not exist
        """
        now = self._clock()
        with self._transaction("enqueue") as session:
            job = session.get(JobModel, job_id)
            if job is None:
                raise QueueError(f"Cannot enqueue unknown job: {job_id}")
            lease_id = self._insert_entry(session, job, now, delay_seconds)

        logger.debug(
            "Job enqueued" if lease_id is not None else "Job already queued",
            extra={"event": "queue.enqueued", "job_id": job_id, "lease_id": lease_id},
        )
        return lease_id

    def _insert_entry(
        self, session: Session, job: JobModel, now: datetime, delay_seconds: int = 0
    ) -> Optional[int]:
        """Insert a live entry for job unless one exists. Returns the new msg_id."""
        now_iso = to_storage(now)
        values = {
            "job_id": job.id,
            "read_ct": 0,
            "enqueued_at": now_iso,
            "vt": to_storage(now + timedelta(seconds=delay_seconds)),
            "message": job.to_queue_message(now_iso),
        }

        insert_factory = _CONFLICT_INSERTS.get(session.get_bind().dialect.name)
        if insert_factory is not None:
            stmt = insert_factory(QueueMessageModel).values(**values).on_conflict_do_nothing(
                index_elements=["job_id"]
            )
            if session.execute(stmt).rowcount != 1:
                return None
            return session.execute(
                select(QueueMessageModel.msg_id).where(QueueMessageModel.job_id == job.id)
            ).scalar_one()

        existing = session.execute(
            select(QueueMessageModel.msg_id).where(QueueMessageModel.job_id == job.id)
        ).first()
        if existing is not None:
            return None
        model = QueueMessageModel(**values)
        session.add(model)
        session.flush()
        return model.msg_id

    def dequeue(self, batch_size: int, visibility_timeout: int) -> List[QueueEntry]:
        """Lease up to batch_size visible entries, oldest first."""
        if batch_size <= 0:
            return []

        now = self._clock()
        now_iso = to_storage(now)
        hidden_until = to_storage(now + timedelta(seconds=visibility_timeout))

        with self._transaction("dequeue") as session:
            candidates = session.execute(
                select(QueueMessageModel.msg_id)
                .where(QueueMessageModel.vt <= now_iso)
                .order_by(QueueMessageModel.msg_id)
                .limit(batch_size)
                .with_for_update(skip_locked=True)
            ).scalars().all()

            leased = []
            for msg_id in candidates:
                result = session.execute(
                    update(QueueMessageModel)
                    .where(QueueMessageModel.msg_id == msg_id, QueueMessageModel.vt <= now_iso)
                    .values(vt=hidden_until, read_ct=QueueMessageModel.read_ct + 1)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    leased.append(msg_id)

            if not leased:
                return []

            rows = session.execute(
                select(QueueMessageModel)
                .where(QueueMessageModel.msg_id.in_(leased))
                .order_by(QueueMessageModel.msg_id)
            ).scalars().all()
            entries = [row.to_domain() for row in rows]

        logger.debug(
            f"Leased {len(entries)} queue entries",
            extra={
                "event": "queue.dequeued",
                "leased_count": len(entries),
                "visibility_timeout": visibility_timeout,
            },
        )
        return entries

    def release_lease(self, lease_id: int) -> None:
        with self._transaction("release") as session:
            result = session.execute(
                delete(QueueMessageModel)
                .where(QueueMessageModel.msg_id == lease_id)
                .execution_options(synchronize_session=False)
            )
        if result.rowcount == 0:
            logger.debug(
                "Released lease was already gone",
                extra={"event": "queue.release.missing", "lease_id": lease_id},
            )

    def archive_to_dead_letter(self, lease_id: int, error_message: str) -> None:
        """Copy the entry into the dead-letter archive and delete it, atomically."""
        archived_at = to_storage(self._clock())

        with self._transaction("archive") as session:
            row = session.get(QueueMessageModel, lease_id)
            if row is None:
                logger.warning(
                    "Cannot archive missing queue entry",
                    extra={"event": "queue.archive.missing", "lease_id": lease_id},
                )
                return

            message = {
                **(row.message or {}),
                "original_msg_id": row.msg_id,
                "error_message": error_message,
                "archived_at": archived_at,
            }
            session.add(DeadLetterModel(
                original_msg_id=row.msg_id,
                job_id=row.job_id,
                message=message,
                error_message=error_message,
                read_ct=row.read_ct,
                archived_at=archived_at,
            ))
            session.delete(row)

        logger.info(
            "Queue entry archived to dead-letter store",
            extra={"event": "queue.archived", "lease_id": lease_id},
        )

    def promote_scheduled(self, tenant_id: Optional[str] = None) -> int:
        """Enqueue due jobs and move them to ``queued``.

        Two candidate sets, highest priority first, capped at promotion_limit:
        scheduled jobs whose scheduled_at has passed, then failed jobs with
        retry budget left whose next_retry_at has passed.
        """
        now = self._clock()
        now_iso = to_storage(now)

        with self._transaction("promotion") as session:
            due = select(JobModel).where(
                JobModel.status_code == JobStatus.SCHEDULED.value,
                JobModel.scheduled_at.is_not(None),
                JobModel.scheduled_at <= now_iso,
            )
            if tenant_id:
                due = due.where(JobModel.tenant_id == tenant_id)
            jobs = list(session.execute(
                due.order_by(JobModel.priority.desc(), JobModel.scheduled_at.asc())
                .limit(self.promotion_limit)
                .with_for_update(skip_locked=True)
            ).scalars())

            remaining = self.promotion_limit - len(jobs)
            if remaining > 0:
                retryable = select(JobModel).where(
                    JobModel.status_code == JobStatus.FAILED.value,
                    JobModel.next_retry_at.is_not(None),
                    JobModel.next_retry_at <= now_iso,
                    JobModel.retry_count
                    < func.coalesce(JobModel.max_retries, self.default_max_retries),
                )
                if tenant_id:
                    retryable = retryable.where(JobModel.tenant_id == tenant_id)
                jobs.extend(session.execute(
                    retryable.order_by(JobModel.priority.desc(), JobModel.next_retry_at.asc())
                    .limit(remaining)
                    .with_for_update(skip_locked=True)
                ).scalars())

            promoted = 0
            for job in jobs:
                if self._insert_entry(session, job, now) is not None:
                    promoted += 1

                reason = "retry due" if job.status_code == JobStatus.FAILED.value else "schedule due"
                session.add(StatusHistoryModel(
                    job_id=job.id,
                    from_status_code=job.status_code,
                    to_status_code=JobStatus.QUEUED.value,
                    reason=reason,
                    performed_by="promoter",
                    created_at=now_iso,
                ))
                job.previous_status_code = job.status_code
                job.status_code = JobStatus.QUEUED.value
                job.status_changed_at = now_iso
                job.updated_at = now_iso
                job.next_retry_at = None

        if promoted:
            logger.info(
                f"Promoted {promoted} due jobs onto the queue",
                extra={"event": "queue.promoted", "promoted_count": promoted, "tenant_id": tenant_id},
            )
        return promoted

    def metrics(self) -> QueueMetrics:
        now_iso = to_storage(self._clock())
        with self._transaction("metrics") as session:
            total, visible, oldest = session.execute(
                select(
                    func.count(QueueMessageModel.msg_id),
                    func.sum(case((QueueMessageModel.vt <= now_iso, 1), else_=0)),
                    func.min(QueueMessageModel.enqueued_at),
                )
            ).one()
            dead_letters = session.execute(
                select(func.count(DeadLetterModel.id))
            ).scalar_one()

        return QueueMetrics(
            queue_length=total,
            visible=visible or 0,
            in_flight=total - (visible or 0),
            dead_letters=dead_letters,
            oldest_enqueued_at=from_storage(oldest),
        )

    def list_dead_letters(self, limit: int = 50) -> List[DeadLetterRecord]:
        with self._transaction("dead_letters") as session:
            rows = session.execute(
                select(DeadLetterModel).order_by(DeadLetterModel.archived_at.desc()).limit(limit)
            ).scalars().all()
            return [row.to_domain() for row in rows]
