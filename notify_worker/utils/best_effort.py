"""Fire-and-forget side effects.

Some writes (status history, audit rows) must never fail the operation they
accompany. ``best_effort`` runs such a write, logs any failure and returns a
SideEffectResult the caller is free to ignore.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from notify_worker.logging import get_logger

logger = get_logger(__name__, component="side_effects")


@dataclass(frozen=True)
class SideEffectResult:
    """Outcome of a best-effort side effect."""

    ok: bool
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok


def best_effort(action: Callable[[], Any], *, event: str, **fields: Any) -> SideEffectResult:
    """Run action, logging instead of raising on failure.

    Args:
        action: Zero-argument callable performing the side effect
        event: Event name logged on failure (``<event>.failed``)
        **fields: Extra structured fields for the failure log

    Returns:
        SideEffectResult describing whether the action completed
    """
    try:
        action()
    except Exception as e:
        logger.warning(
            f"Best-effort side effect failed: {e}",
            extra={
                "event": f"{event}.failed",
                "error_type": type(e).__name__,
                **fields,
            },
        )
        return SideEffectResult(ok=False, error=str(e) or type(e).__name__)
    return SideEffectResult(ok=True)
