"""Job-to-user matching.

- MatchEngine: eligible recipients for a job, missing profile traits
- MatchResult / RejectionReason: the per-user decision
"""

from .engine import ApplicationSource, MatchEngine, UserSource
from .models import MatchResult, RejectionReason

__all__ = [
    "MatchEngine",
    "MatchResult",
    "RejectionReason",
    "UserSource",
    "ApplicationSource",
]
