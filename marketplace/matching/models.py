"""Data models for the matching engine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Set


class RejectionReason(str, Enum):
    """Why a candidate user was not matched to a job."""

    OWNER = "owner"
    BANNED = "banned"
    ALREADY_APPLIED = "already_applied"
    NO_SHARED_SKILLS = "no_shared_skills"
    USER_WITHOUT_LOCATION = "user_without_location"
    JOB_WITHOUT_LOCATION = "job_without_location"
    OUT_OF_RANGE = "out_of_range"


@dataclass
class MatchResult:
    """Result of evaluating one user against one job.

    Attributes:
        user_id: ID of the evaluated user
        is_match: True if the user should be told about the job
        matched_skill_ids: Skills the user shares with the job
        distance_km: Great-circle distance, when both locations are known
        reason: Why the user was rejected (None for a match)
    """

    user_id: int
    is_match: bool
    matched_skill_ids: Set[int] = field(default_factory=set)
    distance_km: Optional[float] = None
    reason: Optional[RejectionReason] = None

    @property
    def summary(self) -> str:
        if self.is_match:
            distance = f"{self.distance_km:.1f} km" if self.distance_km is not None else "n/a"
            return f"matched {len(self.matched_skill_ids)} skill(s) at {distance}"
        return f"rejected: {self.reason.value if self.reason else 'unknown'}"
