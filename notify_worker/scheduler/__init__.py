"""Daemon-mode scheduling of worker invocations."""

from .service import SchedulerService

__all__ = ["SchedulerService"]
