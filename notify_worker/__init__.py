"""Notification dispatch worker: queue consumption, templating and channel delivery."""

__version__ = "1.0.0"
