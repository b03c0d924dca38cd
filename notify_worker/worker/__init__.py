"""Dispatch worker: promotion, queue consumption and invocation entry point."""

from .consumer import QueueConsumer, build_delivery_request
from .context import WorkerContext
from .invocation import DispatchWorker
from .models import CycleResult, InvocationResult
from .promoter import ScheduledJobPromoter

__all__ = [
    "CycleResult",
    "DispatchWorker",
    "InvocationResult",
    "QueueConsumer",
    "ScheduledJobPromoter",
    "WorkerContext",
    "build_delivery_request",
]
