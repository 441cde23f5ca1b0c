"""Session-per-call adapters for collaborators that outlive one session.

The dispatcher's match engine and admin provider are long-lived, while
repositories are bound to one session. ``UserDirectory`` opens a short
session for each lookup.
"""

from contextlib import AbstractContextManager
from typing import Callable, Iterable, List, Set

from marketplace.domain.models import User

from .database import get_session
from .repositories import JobApplicationRepository, UserRepository


class UserDirectory:
    """Implements ``find_by_any_skill``, ``applicant_ids_for_job`` and ``admins``."""

    def __init__(self, session_factory: Callable[[], AbstractContextManager] = get_session):
        self.session_factory = session_factory

    def find_by_any_skill(self, skill_ids: Iterable[int]) -> List[User]:
        with self.session_factory() as session:
            return UserRepository(session).find_by_any_skill(skill_ids)

    def applicant_ids_for_job(self, job_id: int) -> Set[int]:
        with self.session_factory() as session:
            return JobApplicationRepository(session).applicant_ids_for_job(job_id)

    def admins(self) -> List[User]:
        with self.session_factory() as session:
            return UserRepository(session).admins()
