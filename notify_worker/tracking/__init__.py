"""Job status tracking and retry policy."""

from .policy import FailureDecision, RetryPolicy
from .status import StatusTracker

__all__ = ["FailureDecision", "RetryPolicy", "StatusTracker"]
