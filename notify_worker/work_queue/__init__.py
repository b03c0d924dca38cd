"""Work queue: leasing, acknowledgement, dead-letter archival and promotion."""

from .base import QueueMetrics, QueueService
from .exceptions import QueueError, QueueUnavailableError
from .sql import SqlQueueService

__all__ = [
    "QueueService",
    "QueueMetrics",
    "SqlQueueService",
    "QueueError",
    "QueueUnavailableError",
]
