"""Exceptions shared by the domain and notification layers.

These live in the domain package so that both the domain models (mask
handling, trait lookup) and the notification pipeline can raise them
without import cycles.
"""


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class UnknownNotificationKindError(NotificationError, ValueError):
    """Raised when a notification kind name or mask bit is not recognised."""

    pass


class PayloadContractError(NotificationError):
    """Raised when a dispatch payload lacks a field its notifier requires.

    This is a programming defect in the caller, never a user input problem,
    so it is always propagated.
    """

    def __init__(self, kind: str, missing_fields):
        self.kind = kind
        self.missing_fields = sorted(missing_fields)
        super().__init__(
            f"Payload for '{kind}' is missing required field(s): "
            f"{', '.join(self.missing_fields)}"
        )


class UnknownAttributeError(ValueError):
    """Raised when a profile attribute name does not exist on the user."""

    pass
