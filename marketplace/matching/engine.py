"""Matching engine: which users should hear about a job, and what is missing
from a user's profile.

A user matches a job when:
1. They share at least one skill with the job
2. Both have a location and the distance is within ``matching.radius_km``
3. They have not already applied (in any status)
4. They are neither the job owner nor banned
"""

import logging
from typing import AbstractSet, Iterable, Optional, Protocol, Set

from marketplace.config.models import MatchingConfig
from marketplace.domain.exceptions import UnknownAttributeError
from marketplace.domain.models import Job, Language, Skill, User, is_blank
from marketplace.utils.geo import haversine_km

from .models import MatchResult, RejectionReason

logger = logging.getLogger(__name__)


class UserSource(Protocol):
    def find_by_any_skill(self, skill_ids: Iterable[int]) -> Iterable[User]: ...


class ApplicationSource(Protocol):
    def applicant_ids_for_job(self, job_id: int) -> Set[int]: ...


class MatchEngine:
    """Computes eligible recipients for a job and missing profile traits.

    Data access goes through the two collaborator contracts above; the
    SQLAlchemy repositories implement both.
    """

    def __init__(
        self,
        users: UserSource,
        applications: ApplicationSource,
        config: Optional[MatchingConfig] = None,
        logger_instance: logging.Logger = None,
    ):
        self.users = users
        self.applications = applications
        self.config = config or MatchingConfig()
        self.logger = logger_instance or logger

    @property
    def radius_km(self) -> float:
        return self.config.radius_km

    def matching_users(self, job: Job) -> Set[User]:
        """Every user eligible to be notified about ``job``.

        Returns an unordered set; each user appears at most once.
        """
        if not job.skill_ids:
            return set()

        if job.location is None:
            self.logger.warning(
                f"Job {job.id} has no location; no users can match",
                extra={"event": "matching.job_without_location", "job_id": job.id},
            )
            return set()

        applicant_ids = set(self.applications.applicant_ids_for_job(job.id))
        matched: Set[User] = set()
        rejected = 0

        for user in self.users.find_by_any_skill(job.skill_ids):
            result = self.evaluate(user, job, applicant_ids)
            if result.is_match:
                matched.add(user)
            else:
                rejected += 1

        self.logger.info(
            f"Job {job.id} matched {len(matched)} user(s)",
            extra={
                "event": "matching.completed",
                "job_id": job.id,
                "matched": len(matched),
                "rejected": rejected,
                "radius_km": self.radius_km,
            },
        )
        return matched

    def evaluate(self, user: User, job: Job, applicant_ids: AbstractSet[int] = frozenset()) -> MatchResult:
        """Decide whether a single user matches ``job``.

        ``applicant_ids`` is only tested for membership; callers convert once.

        Checks run cheapest first; the first failing check is the reason.
        """
        if user.id == job.owner_user_id:
            return self._reject(user, job, RejectionReason.OWNER)
        if user.banned:
            return self._reject(user, job, RejectionReason.BANNED)
        if user.id in applicant_ids:
            return self._reject(user, job, RejectionReason.ALREADY_APPLIED)

        shared = set(user.skill_ids) & set(job.skill_ids)
        if not shared:
            return self._reject(user, job, RejectionReason.NO_SHARED_SKILLS)

        if job.location is None:
            return self._reject(user, job, RejectionReason.JOB_WITHOUT_LOCATION, shared)
        if user.location is None:
            return self._reject(user, job, RejectionReason.USER_WITHOUT_LOCATION, shared)

        distance = haversine_km(
            user.location.latitude,
            user.location.longitude,
            job.location.latitude,
            job.location.longitude,
        )
        if distance > self.radius_km:
            return self._reject(user, job, RejectionReason.OUT_OF_RANGE, shared, distance)

        return MatchResult(
            user_id=user.id, is_match=True, matched_skill_ids=shared, distance_km=distance
        )

    def _reject(
        self,
        user: User,
        job: Job,
        reason: RejectionReason,
        shared: Optional[Set[int]] = None,
        distance: Optional[float] = None,
    ) -> MatchResult:
        self.logger.debug(
            f"User {user.id} did not match job {job.id}: {reason.value}",
            extra={
                "event": "matching.user_rejected",
                "job_id": job.id,
                "user_id": user.id,
                "reason": reason.value,
            },
        )
        return MatchResult(
            user_id=user.id,
            is_match=False,
            matched_skill_ids=shared or set(),
            distance_km=distance,
            reason=reason,
        )

    @staticmethod
    def missing_traits(user: User, attributes: Iterable[str]) -> Set[str]:
        """Names from ``attributes`` whose value on ``user`` is blank.

        Raises:
            UnknownAttributeError: If a name is not a user attribute
        """
        values = user.all_attributes()
        missing = set()
        for name in attributes:
            if name not in values:
                raise UnknownAttributeError(f"Unknown user attribute: '{name}'")
            if is_blank(values[name]):
                missing.add(name)
        return missing

    @staticmethod
    def missing_skills(user: User, skills: Iterable[Skill]) -> Set[Skill]:
        return {skill for skill in skills if skill.id not in user.skill_ids}

    @staticmethod
    def missing_languages(user: User, languages: Iterable[Language]) -> Set[Language]:
        return {language for language in languages if language.id not in user.language_ids}
