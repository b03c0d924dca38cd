"""Top-level trigger invocation: promote due jobs, then run one cycle."""

import threading
import time
from typing import Callable
from uuid import uuid4

from notify_worker.logging import get_logger
from notify_worker.logging.context import log_context
from notify_worker.utils.timestamps import utc_now

from .consumer import QueueConsumer
from .context import WorkerContext
from .models import InvocationResult
from .promoter import ScheduledJobPromoter

logger = get_logger(__name__, component="worker")


class DispatchWorker:
    """
    Runs invocations for the HTTP trigger and the daemon scheduler.

    A fresh WorkerContext is built for every invocation. Overlapping
    invocations in one process are skipped rather than queued; across
    processes the queue leases keep them apart.
    """

    def __init__(self, context_factory: Callable[[], WorkerContext]):
        self.context_factory = context_factory
        self._lock = threading.Lock()

    def invoke(self) -> InvocationResult:
        """
        Execute one invocation.

        Returns:
            InvocationResult with promotion and cycle counts

        Raises:
            QueueError: If promotion or leasing cannot reach the queue store.
                Per-entry failures never propagate.
        """
        run_id = uuid4().hex

        if not self._lock.acquire(blocking=False):
            with log_context(run_id=run_id):
                logger.warning(
                    "Invocation skipped: previous invocation still in progress",
                    extra={"event": "worker.invocation.skipped", "reason": "lock_held"},
                )
            return InvocationResult(timestamp=utc_now(), skipped=True, run_id=run_id)

        started = time.monotonic()
        try:
            with log_context(run_id=run_id):
                logger.info("Invocation started", extra={"event": "worker.invocation.started"})

                context = self.context_factory()
                promoted = ScheduledJobPromoter(context.queue).promote_due()
                cycle = QueueConsumer(context).run_cycle()

                result = InvocationResult(
                    scheduled_enqueued=promoted,
                    processed=cycle.processed,
                    errors=cycle.errors,
                    timestamp=context.clock(),
                    run_id=run_id,
                    duration_seconds=round(time.monotonic() - started, 3),
                )
                logger.info(
                    "Invocation completed",
                    extra={
                        "event": "worker.invocation.completed",
                        "scheduled_enqueued": result.scheduled_enqueued,
                        "processed": result.processed,
                        "errors": result.errors,
                        "duration_seconds": result.duration_seconds,
                    },
                )
                return result
        except Exception as e:
            with log_context(run_id=run_id):
                logger.error(
                    f"Invocation failed: {e}",
                    exc_info=True,
                    extra={"event": "worker.invocation.failed", "error_type": type(e).__name__},
                )
            raise
        finally:
            self._lock.release()
