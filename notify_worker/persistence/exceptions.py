"""Persistence layer exceptions.

Every database failure surfaces as a PersistenceError subclass so callers can
handle the whole family with one except clause.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""


class DatabaseConnectionError(PersistenceError):
    """Raised when the database cannot be initialized or reached.

    Examples:
    - Empty or malformed database URL
    - Database file not accessible
    - get_session() called before init_database()
    """


class RecordNotFoundError(PersistenceError):
    """Raised when an operation requires a row that does not exist.

    Lookups that may legitimately miss return None instead.
    """


class DataIntegrityError(PersistenceError):
    """Raised when a write violates a constraint (primary key, unique job_id, ...)."""
