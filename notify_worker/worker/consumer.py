"""Queue consumer: one lease-dispatch-settle cycle over a batch of entries."""

import time
from typing import Callable, Optional

from notify_worker.domain.models import (
    SETTLED_STATUSES,
    ChannelCode,
    DeliveryOutcome,
    DeliveryRequest,
    Job,
    QueueEntry,
    Template,
)
from notify_worker.logging import get_logger
from notify_worker.logging.context import log_context
from notify_worker.templates.renderer import render_template

from .context import WorkerContext
from .models import CycleResult, Settlement

logger = get_logger(__name__, component="consumer")


def build_delivery_request(job: Job, template: Template, channel: ChannelCode) -> DeliveryRequest:
    """Render template for job and build the channel request."""
    rendered = render_template(template, job.render_variables())

    subject = rendered.subject
    if channel == ChannelCode.EMAIL and not subject:
        subject = f"Notification: {job.source_type_code}"
    elif channel == ChannelCode.INAPP and not subject:
        subject = job.source_type_code

    if rendered.unresolved:
        logger.debug(
            "Rendered content has unresolved placeholders",
            extra={"event": "consumer.render.unresolved", "placeholders": rendered.unresolved},
        )

    return DeliveryRequest(
        to=job.recipient_address(channel),
        to_name=job.recipient_name,
        subject=subject,
        body=rendered.body,
        body_html=rendered.body_html,
        provider_template_id=rendered.provider_template_id,
        template_variables=rendered.variables,
        declared_variables=list(template.variables),
        metadata=dict(job.metadata),
        tenant_id=job.tenant_id,
        source_type=job.source_type_code,
        job_id=job.id,
    )


class QueueConsumer:
    """
    Leases a batch of queue entries and handles each one sequentially.

    Every leased entry leaves the queue exactly once per cycle, either
    released or archived to the dead-letter store, whatever the dispatch
    result. Retries are driven by the job's retry counter and the promoter,
    never by queue redelivery. The only entries left in place are those
    skipped after the cycle deadline or whose settlement failed; they become
    visible again when their lease expires.
    """

    def __init__(self, context: WorkerContext, monotonic: Callable[[], float] = time.monotonic):
        self.context = context
        self.worker_config = context.app_config.worker
        self._monotonic = monotonic

    def run_cycle(self) -> CycleResult:
        """Lease one batch and process it.

        Returns:
            CycleResult with processed and error counts

        Raises:
            QueueError: If the batch cannot be leased
        """
        started = self._monotonic()
        deadline = started + self.worker_config.cycle_timeout_seconds

        entries = self.context.queue.dequeue(
            self.worker_config.batch_size, self.worker_config.visibility_timeout
        )
        result = CycleResult(leased=len(entries))

        logger.info(
            f"Leased {len(entries)} queue entries",
            extra={"event": "consumer.cycle.started", "leased_count": len(entries)},
        )

        for index, entry in enumerate(entries):
            if self._monotonic() >= deadline:
                result.deferred = len(entries) - index
                logger.warning(
                    "Cycle deadline reached, leaving remaining entries to lease expiry",
                    extra={"event": "consumer.cycle.deadline", "deferred_count": result.deferred},
                )
                break

            with log_context(lease_id=entry.lease_id, job_id=entry.job_id):
                if self._process_entry(entry):
                    result.processed += 1
                else:
                    result.errors += 1

        logger.info(
            f"Cycle finished: {result.processed} processed, {result.errors} errors",
            extra={
                "event": "consumer.cycle.completed",
                "processed": result.processed,
                "errors": result.errors,
                "deferred_count": result.deferred,
                "duration_seconds": round(self._monotonic() - started, 3),
            },
        )
        return result

    def _process_entry(self, entry: QueueEntry) -> bool:
        """Handle then settle one entry. Returns True if nothing went wrong."""
        try:
            settlement = self._handle(entry)
        except Exception as e:
            logger.error(
                f"Unexpected error handling queue entry: {e}",
                exc_info=True,
                extra={"event": "consumer.entry.crashed", "error_type": type(e).__name__},
            )
            settlement = self._fail(entry.job_id, str(e) or type(e).__name__)

        settled = self._settle(entry, settlement)
        return settled and settlement.ok

    def _handle(self, entry: QueueEntry) -> Settlement:
        job_id = entry.job_id
        job = self.context.status_tracker.load(job_id) if job_id else None

        if job is None:
            logger.info(
                "Discarding stale queue entry",
                extra={"event": "consumer.entry.stale"},
            )
            return Settlement(reason="stale")

        if job.status_code in SETTLED_STATUSES:
            logger.info(
                f"Job already {job.status_code}, discarding redelivered entry",
                extra={"event": "consumer.entry.already_settled", "status": job.status_code},
            )
            return Settlement(reason="already_settled")

        policy = self.context.retry_policy
        if policy.is_exhausted(job):
            reason = job.error_message or f"Retry budget exhausted ({job.retry_count}/{policy.effective_max(job)})"
            try:
                self.context.status_tracker.mark_exhausted(job.id, reason)
            except Exception as e:
                logger.error(
                    f"Failed to mark exhausted job as failed: {e}",
                    extra={"event": "consumer.entry.exhausted_mark_failed", "error_type": type(e).__name__},
                )
            logger.warning(
                "Retry budget exhausted, archiving without dispatch",
                extra={
                    "event": "consumer.entry.exhausted",
                    "retry_count": job.retry_count,
                    "max_retries": policy.effective_max(job),
                },
            )
            return Settlement(archive=True, error_message=reason, reason="exhausted")

        self.context.status_tracker.mark_processing(job.id)
        outcome = self._dispatch(job)

        if not outcome.success:
            return self._fail(job.id, outcome.error or "Unknown error")

        try:
            self.context.status_tracker.mark_sent(job.id, outcome)
        except Exception as e:
            # Provider accepted the message; never send it again
            logger.error(
                f"Delivered but failed to record sent status: {e}",
                extra={
                    "event": "consumer.entry.sent_unrecorded",
                    "provider_message_id": outcome.provider_message_id,
                },
            )
            return Settlement(ok=False, reason="sent_unrecorded")
        return Settlement(reason="sent")

    def _dispatch(self, job: Job) -> DeliveryOutcome:
        channel_code = ChannelCode.parse(job.channel_code)
        channel = self.context.channels.get(channel_code.value) if channel_code else None
        if channel is None:
            return DeliveryOutcome.failed(f"Unknown channel: {job.channel_code}")

        template = self.context.template_resolver.resolve(
            job.source_type_code, channel_code.value, job.tenant_id
        )
        if template is None:
            return DeliveryOutcome.failed(
                f"No template found for {job.source_type_code}/{channel_code.value}"
            )

        with log_context(channel=channel_code.value):
            return channel.send(build_delivery_request(job, template, channel_code))

    def _fail(self, job_id: Optional[str], error: str) -> Settlement:
        """Advance the job through the retry policy after a failed attempt."""
        if not job_id:
            return Settlement(ok=False, error_message=error, reason="failed")

        try:
            decision = self.context.status_tracker.record_failure(job_id, error)
        except Exception as e:
            logger.error(
                f"Failed to record dispatch failure: {e}",
                extra={"event": "consumer.entry.failure_unrecorded", "error_type": type(e).__name__},
            )
            return Settlement(ok=False, error_message=error, reason="failure_unrecorded")

        if decision is not None and decision.terminal:
            return Settlement(archive=True, error_message=error, ok=False, reason="failed_terminal")
        return Settlement(ok=False, error_message=error, reason="failed")

    def _settle(self, entry: QueueEntry, settlement: Settlement) -> bool:
        """Release or archive the entry. Returns False if the store call failed.

        A failed archive is not followed by a release: the entry resurfaces
        after its lease and is archived again through the exhausted path.
        """
        queue = self.context.queue
        try:
            if settlement.archive:
                queue.archive_to_dead_letter(entry.lease_id, settlement.error_message or "")
            else:
                queue.release_lease(entry.lease_id)
        except Exception as e:
            logger.error(
                f"Failed to settle queue entry: {e}",
                extra={
                    "event": "consumer.entry.settle_failed",
                    "archive": settlement.archive,
                    "error_type": type(e).__name__,
                },
            )
            return False

        logger.debug(
            "Queue entry settled",
            extra={
                "event": "consumer.entry.settled",
                "outcome": settlement.reason,
                "archived": settlement.archive,
            },
        )
        return True
