"""Result models for consumer cycles and trigger invocations."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from notify_worker.utils.timestamps import format_timestamp


@dataclass
class CycleResult:
    """
    Aggregate counts from one consumer cycle.

    Attributes:
        processed: Entries settled without error (sent, stale, already
            settled or archived on exhaustion)
        errors: Entries whose dispatch failed or whose settlement failed
        leased: Entries leased at the start of the cycle
        deferred: Entries left unsettled because the cycle deadline passed
    """

    processed: int = 0
    errors: int = 0
    leased: int = 0
    deferred: int = 0


@dataclass
class InvocationResult:
    """
    Outcome of one trigger invocation (promotion followed by one cycle).

    Attributes:
        scheduled_enqueued: Jobs promoted onto the queue
        processed: See CycleResult.processed
        errors: See CycleResult.errors
        timestamp: When the invocation finished
        skipped: True if another invocation was still running
    """

    scheduled_enqueued: int = 0
    processed: int = 0
    errors: int = 0
    timestamp: Optional[datetime] = None
    skipped: bool = False
    run_id: Optional[str] = None
    duration_seconds: float = 0.0

    def to_response(self) -> Dict[str, Any]:
        """Body returned by the HTTP trigger."""
        body: Dict[str, Any] = {
            "success": True,
            "scheduled_enqueued": self.scheduled_enqueued,
            "processed": self.processed,
            "errors": self.errors,
            "timestamp": format_timestamp(self.timestamp) if self.timestamp else None,
        }
        if self.skipped:
            body["skipped"] = True
        return body


@dataclass(frozen=True)
class Settlement:
    """How a leased entry leaves the queue."""

    archive: bool = False
    error_message: Optional[str] = None
    ok: bool = True
    reason: str = "handled"
