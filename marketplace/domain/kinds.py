"""Canonical notification kinds.

The order of ``NotificationKind`` is part of the storage format: each member
carries an explicit bit index used by ``NotificationMask``. New kinds must be
appended with the next free bit. Never reorder, renumber or remove a member,
as that silently changes the meaning of every stored mask.
"""

from enum import Enum
from typing import List, Union

from .exceptions import UnknownNotificationKindError


class NotificationKind(str, Enum):
    """User-maskable notification kinds, each bound to a stable bit."""

    def __new__(cls, value: str, bit: int):
        obj = str.__new__(cls, value)
        obj._value_ = value
        obj.bit = bit
        return obj

    ACCEPTED_APPLICANT_CONFIRMATION_OVERDUE = ("accepted_applicant_confirmation_overdue", 0)
    ACCEPTED_APPLICANT_WITHDRAWN = ("accepted_applicant_withdrawn", 1)
    APPLICANT_ACCEPTED = ("applicant_accepted", 2)
    APPLICANT_WILL_PERFORM = ("applicant_will_perform", 3)
    INVOICE_CREATED = ("invoice_created", 4)
    JOB_USER_PERFORMED = ("job_user_performed", 5)
    JOB_CANCELLED = ("job_cancelled", 6)
    NEW_APPLICANT = ("new_applicant", 7)
    USER_JOB_MATCH = ("user_job_match", 8)
    NEW_CHAT_MESSAGE = ("new_chat_message", 9)
    NEW_JOB_COMMENT = ("new_job_comment", 10)
    APPLICANT_REJECTED = ("applicant_rejected", 11)
    JOB_MATCH = ("job_match", 12)
    NEW_APPLICANT_JOB_INFO = ("new_applicant_job_info", 13)
    APPLICANT_WILL_PERFORM_JOB_INFO = ("applicant_will_perform_job_info", 14)
    FAILED_TO_ACTIVATE_INVOICE = ("failed_to_activate_invoice", 15)
    UPDATE_DATA_REMINDER = ("update_data_reminder", 16)
    MARKETING = ("marketing", 17)


class TransactionalKind(str, Enum):
    """Dispatchable kinds that are not part of the maskable enumeration."""

    RESET_PASSWORD = "reset_password"
    JOB_PERFORMED = "job_performed"
    CONTACT = "contact"


AnyKind = Union[NotificationKind, TransactionalKind]


def notification_names() -> List[str]:
    """Return the canonical kind names ordered by bit index."""
    return [kind.value for kind in sorted(NotificationKind, key=lambda k: k.bit)]


def resolve_notification_kind(kind) -> NotificationKind:
    """Resolve a maskable kind from an enum member or its name.

    Raises:
        UnknownNotificationKindError: If ``kind`` is not a maskable kind
    """
    if isinstance(kind, NotificationKind):
        return kind
    try:
        return NotificationKind(str(kind))
    except ValueError:
        raise UnknownNotificationKindError(f"Unknown notification kind: {kind!r}") from None


def resolve_kind(kind) -> AnyKind:
    """Resolve any dispatchable kind (maskable or transactional).

    Raises:
        UnknownNotificationKindError: If ``kind`` names no known kind
    """
    if isinstance(kind, (NotificationKind, TransactionalKind)):
        return kind
    name = str(kind)
    for enum_cls in (NotificationKind, TransactionalKind):
        try:
            return enum_cls(name)
        except ValueError:
            continue
    raise UnknownNotificationKindError(f"Unknown notification kind: {kind!r}")
