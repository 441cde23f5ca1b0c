"""Persistence layer exceptions.

All of them inherit from PersistenceError so callers can catch the whole
layer with a single except clause.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when the database cannot be initialized or reached."""

    pass


class RecordNotFoundError(PersistenceError):
    """Raised by ``find``-style lookups when the record does not exist.

    Optional lookups (``get``) return None instead.
    """

    pass


class DataIntegrityError(PersistenceError):
    """Raised on constraint violations (unique email, unknown foreign key)."""

    pass
