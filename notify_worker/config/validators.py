"""Non-fatal configuration checks."""

import warnings
from typing import Any, Dict, List

from .duration import DurationParseError, parse_duration


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Inspect raw configuration for settings that are valid but risky.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    worker = config_dict.get("worker") or {}
    if not isinstance(worker, dict):
        return warning_messages

    visibility_timeout = worker.get("visibility_timeout", 60)
    cycle_timeout = worker.get("cycle_timeout_seconds", 50)
    if (
        isinstance(visibility_timeout, int)
        and isinstance(cycle_timeout, int)
        and cycle_timeout >= visibility_timeout
    ):
        # Leases would expire while the cycle is still working through them
        warning_messages.append(
            f"cycle_timeout_seconds ({cycle_timeout}) is not below visibility_timeout "
            f"({visibility_timeout}); slow cycles may cause duplicate provider sends"
        )

    batch_size = worker.get("batch_size", 10)
    if isinstance(batch_size, int) and batch_size > 50:
        warning_messages.append(
            f"Large batch_size ({batch_size}) may exceed provider rate limits"
        )

    poll_interval = worker.get("poll_interval")
    if isinstance(poll_interval, str) and isinstance(visibility_timeout, int):
        try:
            if parse_duration(poll_interval) < visibility_timeout:
                warning_messages.append(
                    f"poll_interval ({poll_interval}) is shorter than visibility_timeout; "
                    "overlapping invocations will mostly find leased entries"
                )
        except DurationParseError:
            # Reported as a validation error by the model
            pass

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """Emit warning messages through the warnings module."""
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
