"""Scheduled-job promotion."""

from typing import Optional

from notify_worker.logging import get_logger
from notify_worker.work_queue.base import QueueService

logger = get_logger(__name__, component="promoter")


class ScheduledJobPromoter:
    """Moves due scheduled jobs, and failed jobs due for retry, onto the queue.

    Idempotency comes from the queue store: a job never has more than one
    live entry, so promoting the same job twice enqueues it once.
    """

    def __init__(self, queue: QueueService):
        self.queue = queue

    def promote_due(self, tenant_id: Optional[str] = None) -> int:
        """Promote due jobs.

        Returns:
            Number of queue entries created

        Raises:
            QueueError: If the queue store is unreachable
        """
        count = self.queue.promote_scheduled(tenant_id=tenant_id)
        logger.info(
            f"Promoted {count} due jobs",
            extra={"event": "promoter.completed", "promoted_count": count, "tenant_id": tenant_id},
        )
        return count
