"""Persistence layer for marketplace data using SQLAlchemy.

Public API:
    - init_database(database_url) / get_session() / close_database() / get_engine()
    - UserRepository, SkillRepository, LanguageRepository, JobRepository,
      JobApplicationRepository, InvoiceRepository
    - UserDirectory: session-per-call lookups for the dispatcher
    - PersistenceError and subclasses

Example usage:
    >>> from marketplace.persistence import init_database, get_session, UserRepository
    >>> init_database("sqlite:///./data/marketplace.db")
    >>> with get_session() as session:
    ...     admins = UserRepository(session).admins()
"""

from .database import close_database, get_engine, get_session, init_database
from .directory import UserDirectory
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)
from .repositories import (
    InvoiceRepository,
    JobApplicationRepository,
    JobRepository,
    LanguageRepository,
    SkillRepository,
    UserRepository,
)

__all__ = [
    "init_database",
    "get_session",
    "close_database",
    "get_engine",
    "UserRepository",
    "SkillRepository",
    "LanguageRepository",
    "JobRepository",
    "JobApplicationRepository",
    "InvoiceRepository",
    "UserDirectory",
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
]
