"""Persistence layer: engine/session management, ORM schema and repositories.

Example usage:
    >>> from notify_worker.persistence import init_database, get_session, JobRepository
    >>> init_database("sqlite:///./data/notify_worker.db")
    >>> with get_session() as session:
    ...     job = JobRepository(session).get("jtd-42")
"""

from .database import SessionScope, close_database, get_engine, get_session, init_database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)
from .repositories import (
    InAppNotificationRepository,
    JobRepository,
    StatusHistoryRepository,
    TemplateRepository,
)

__all__ = [
    "init_database",
    "get_session",
    "close_database",
    "get_engine",
    "SessionScope",
    "JobRepository",
    "TemplateRepository",
    "InAppNotificationRepository",
    "StatusHistoryRepository",
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
]
