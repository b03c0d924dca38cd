"""Interval scheduling of worker invocations for daemon mode."""

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from notify_worker.logging import get_logger

logger = get_logger(__name__, component="scheduler")

JOB_ID = "notify-dispatch"


class SchedulerService:
    """
    Runs the worker invocation on a fixed interval in a background thread.

    The main thread stays free to handle signals. Overlapping runs are
    prevented by APScheduler (max_instances=1) and late runs are coalesced.
    """

    def __init__(
        self,
        invoke_callable: Callable[[], Any],
        interval_seconds: int,
        shutdown_event: Optional[threading.Event] = None,
    ):
        """
        Args:
            invoke_callable: Called on each tick (e.g. DispatchWorker.invoke)
            interval_seconds: Seconds between ticks
            shutdown_event: Set on shutdown so the main thread can exit
        """
        self.invoke_callable = invoke_callable
        self.interval_seconds = interval_seconds
        self.shutdown_event = shutdown_event

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": interval_seconds,
            },
            timezone=timezone.utc,
        )

    def _tick(self) -> None:
        # Invocation-level failures are retried on the next tick
        try:
            self.invoke_callable()
        except Exception as e:
            logger.error(
                f"Scheduled invocation failed: {e}",
                exc_info=True,
                extra={"event": "scheduler.tick.failed", "error_type": type(e).__name__},
            )

    def start(self) -> None:
        """Register the dispatch job and start. The first tick runs immediately."""
        next_run = datetime.now(timezone.utc)
        self.scheduler.add_job(
            func=self._tick,
            trigger=IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc),
            id=JOB_ID,
            name="Notification dispatch",
            replace_existing=True,
            next_run_time=next_run,
        )
        self.scheduler.start()

        logger.info(
            f"Scheduler started with interval: {self.interval_seconds} seconds",
            extra={
                "event": "scheduler.started",
                "interval_seconds": self.interval_seconds,
                "next_run_time": next_run.isoformat(),
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """Stop the scheduler and signal the shutdown event."""
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def trigger_now(self) -> None:
        """Run one invocation synchronously in the calling thread."""
        logger.info("Triggering immediate invocation", extra={"event": "scheduler.trigger_now"})
        self._tick()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None
