"""Retry policy: when a failed job is retried and when it is dead-lettered."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from notify_worker.domain.models import DEFAULT_MAX_RETRIES, Job


@dataclass(frozen=True)
class FailureDecision:
    """What happens to a job after one failed attempt.

    Attributes:
        retry_count: Retry count to store for the job
        max_retries: Effective retry budget
        terminal: True when the budget is spent and the entry is dead-lettered
        next_retry_at: When the job becomes eligible again (None if terminal)
    """

    retry_count: int
    max_retries: int
    terminal: bool
    next_retry_at: Optional[datetime] = None


class RetryPolicy:
    """Bounded retries with exponential backoff.

    A job is exhausted once ``retry_count >= max_retries``, where a job
    without its own budget uses default_max_retries. Each failure adds one
    to retry_count, never past the budget.
    """

    def __init__(
        self,
        default_max_retries: int = DEFAULT_MAX_RETRIES,
        initial_delay_seconds: int = 60,
        backoff_multiplier: float = 2.0,
        max_delay_seconds: int = 3600,
    ):
        self.default_max_retries = default_max_retries
        self.initial_delay_seconds = initial_delay_seconds
        self.backoff_multiplier = backoff_multiplier
        self.max_delay_seconds = max_delay_seconds

    @classmethod
    def from_config(cls, worker_config, retry_config) -> "RetryPolicy":
        return cls(
            default_max_retries=worker_config.default_max_retries,
            initial_delay_seconds=retry_config.initial_delay_seconds,
            backoff_multiplier=retry_config.backoff_multiplier,
            max_delay_seconds=retry_config.max_delay_seconds,
        )

    def effective_max(self, job: Job) -> int:
        return job.effective_max_retries(self.default_max_retries)

    def is_exhausted(self, job: Job) -> bool:
        """True if the job may not be attempted again."""
        return job.retry_count >= self.effective_max(job)

    @staticmethod
    def should_archive(retry_count_after_failure: int, max_retries: int) -> bool:
        return retry_count_after_failure >= max_retries

    def next_attempt_delay(self, retry_count: int) -> int:
        """Seconds to wait before the attempt following retry_count failures.

        Example:
            >>> RetryPolicy(initial_delay_seconds=60).next_attempt_delay(3)
            240
        """
        exponent = max(retry_count - 1, 0)
        delay = self.initial_delay_seconds * (self.backoff_multiplier ** exponent)
        return int(min(delay, self.max_delay_seconds))

    def evaluate_failure(self, job: Job, now: datetime) -> FailureDecision:
        max_retries = self.effective_max(job)
        after = job.retry_count + 1 if job.retry_count < max_retries else job.retry_count

        if self.should_archive(after, max_retries):
            return FailureDecision(retry_count=after, max_retries=max_retries, terminal=True)

        return FailureDecision(
            retry_count=after,
            max_retries=max_retries,
            terminal=False,
            next_retry_at=now + timedelta(seconds=self.next_attempt_delay(after)),
        )
