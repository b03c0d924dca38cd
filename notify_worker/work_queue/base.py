"""Queue service contract consumed by the worker."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from notify_worker.domain.models import DeadLetterRecord, QueueEntry


@dataclass(frozen=True)
class QueueMetrics:
    """Point-in-time queue depth figures."""

    queue_length: int
    visible: int
    in_flight: int
    dead_letters: int
    oldest_enqueued_at: Optional[datetime] = None


class QueueService(ABC):
    """Durable at-least-once queue with visibility-timeout leasing.

    Leased entries are hidden from other dequeue calls until their visibility
    timeout passes. Entries leave the queue only through release_lease (ack)
    or archive_to_dead_letter.
    """

    @abstractmethod
    def dequeue(self, batch_size: int, visibility_timeout: int) -> List[QueueEntry]:
        """Lease up to batch_size visible entries for visibility_timeout seconds."""

    @abstractmethod
    def release_lease(self, lease_id: int) -> None:
        """Permanently delete a leased entry."""

    @abstractmethod
    def archive_to_dead_letter(self, lease_id: int, error_message: str) -> None:
        """Move a leased entry to the dead-letter archive."""

    @abstractmethod
    def promote_scheduled(self, tenant_id: Optional[str] = None) -> int:
        """Enqueue jobs that are due and return how many were enqueued."""

    @abstractmethod
    def enqueue(self, job_id: str, delay_seconds: int = 0) -> Optional[int]:
        """Enqueue a job; returns the new lease id, or None if already queued."""

    @abstractmethod
    def metrics(self) -> QueueMetrics:
        """Counts of live, visible, in-flight and dead-lettered entries."""

    @abstractmethod
    def list_dead_letters(self, limit: int = 50) -> List[DeadLetterRecord]:
        """Most recently archived dead-letter records."""
