"""Job status transitions written by the consumer.

Each method loads the job in its own transaction, applies the transition
and appends a status history row. History rows are written best-effort in a
separate transaction: a failed history write never undoes a transition.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional

from notify_worker.domain.models import DeliveryOutcome, Job, JobStatus
from notify_worker.logging import get_logger
from notify_worker.persistence.database import SessionScope, get_session
from notify_worker.persistence.exceptions import RecordNotFoundError
from notify_worker.persistence.repositories import JobRepository, StatusHistoryRepository
from notify_worker.utils.best_effort import best_effort
from notify_worker.utils.timestamps import utc_now

from .policy import FailureDecision, RetryPolicy

logger = get_logger(__name__, component="status")


class StatusTracker:
    """Writes job status transitions and their history."""

    def __init__(
        self,
        session_scope: SessionScope = get_session,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._session_scope = session_scope
        self.retry_policy = retry_policy or RetryPolicy()
        self._clock = clock

    def load(self, job_id: str) -> Optional[Job]:
        with self._session_scope() as session:
            return JobRepository(session).get(job_id)

    def mark_processing(self, job_id: str) -> Job:
        now = self._clock()
        return self._transition(
            job_id,
            JobStatus.PROCESSING,
            {"executed_at": now},
            now=now,
            reason="dispatch started",
        )

    def mark_sent(self, job_id: str, outcome: DeliveryOutcome) -> Job:
        now = self._clock()
        return self._transition(
            job_id,
            JobStatus.SENT,
            {
                "provider_message_id": outcome.provider_message_id,
                "provider_response": outcome.provider_response,
                "error_message": None,
                "completed_at": now,
            },
            now=now,
            reason="provider accepted",
        )

    def mark_exhausted(self, job_id: str, reason: str) -> Job:
        """Record a job found with no retry budget left."""
        now = self._clock()
        return self._transition(
            job_id,
            JobStatus.FAILED,
            {"error_message": reason, "completed_at": now, "next_retry_at": None},
            now=now,
            reason=reason,
        )

    def record_failure(self, job_id: str, error: str) -> Optional[FailureDecision]:
        """Record a failed attempt and decide between retry and dead-letter.

        Returns:
            The decision, or None if the job no longer exists
        """
        now = self._clock()
        decision: Optional[FailureDecision] = None

        with self._session_scope() as session:
            repo = JobRepository(session)
            job = repo.get(job_id)
            if job is None:
                logger.warning(
                    "Cannot record failure for missing job",
                    extra={"event": "status.failure.missing_job", "job_id": job_id},
                )
                return None

            decision = self.retry_policy.evaluate_failure(job, now)
            changes: Dict[str, Any] = {
                "status_code": JobStatus.FAILED.value,
                "previous_status_code": job.status_code,
                "status_changed_at": now,
                "updated_at": now,
                "retry_count": decision.retry_count,
                "error_message": error,
                "last_retry_at": now,
                "next_retry_at": decision.next_retry_at,
            }
            if decision.terminal:
                changes["completed_at"] = now
            repo.update_fields(job_id, changes)
            previous = job.status_code

        self._record_history(job_id, previous, JobStatus.FAILED.value, error, now)
        logger.info(
            f"Job failed (attempt {decision.retry_count}/{decision.max_retries})",
            extra={
                "event": "status.failed",
                "retry_count": decision.retry_count,
                "max_retries": decision.max_retries,
                "terminal": decision.terminal,
            },
        )
        return decision

    def _transition(
        self,
        job_id: str,
        status: JobStatus,
        fields: Dict[str, Any],
        now: datetime,
        reason: Optional[str] = None,
    ) -> Job:
        with self._session_scope() as session:
            repo = JobRepository(session)
            job = repo.get(job_id)
            if job is None:
                raise RecordNotFoundError(f"Job not found: {job_id}")

            changes = {
                "status_code": status.value,
                "previous_status_code": job.status_code,
                "status_changed_at": now,
                "updated_at": now,
                **fields,
            }
            updated = repo.update_fields(job_id, changes)

        self._record_history(job_id, job.status_code, status.value, reason, now)
        logger.debug(
            f"Job moved to {status.value}",
            extra={"event": f"status.{status.value}", "from_status": job.status_code},
        )
        return updated

    def _record_history(
        self,
        job_id: str,
        from_status: Optional[str],
        to_status: str,
        reason: Optional[str],
        now: datetime,
    ) -> None:
        def write():
            with self._session_scope() as session:
                StatusHistoryRepository(session).record(
                    job_id, from_status, to_status, reason=reason, created_at=now
                )

        best_effort(write, event="status.history", job_id=job_id, to_status=to_status)
