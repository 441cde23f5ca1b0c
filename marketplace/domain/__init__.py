"""Domain models for the job marketplace."""

from .exceptions import (
    NotificationError,
    PayloadContractError,
    UnknownAttributeError,
    UnknownNotificationKindError,
)
from .kinds import (
    NotificationKind,
    TransactionalKind,
    notification_names,
    resolve_kind,
    resolve_notification_kind,
)
from .mask import NotificationMask
from .models import (
    ApplicationStatus,
    ChatMessage,
    Comment,
    Contact,
    Invoice,
    Job,
    JobApplication,
    Language,
    Location,
    Skill,
    User,
    UserStatus,
    is_blank,
)

__all__ = [
    "ApplicationStatus",
    "ChatMessage",
    "Comment",
    "Contact",
    "Invoice",
    "Job",
    "JobApplication",
    "Language",
    "Location",
    "Skill",
    "User",
    "UserStatus",
    "is_blank",
    "NotificationKind",
    "TransactionalKind",
    "NotificationMask",
    "notification_names",
    "resolve_kind",
    "resolve_notification_kind",
    "NotificationError",
    "PayloadContractError",
    "UnknownAttributeError",
    "UnknownNotificationKindError",
]
