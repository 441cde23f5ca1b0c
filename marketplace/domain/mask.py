"""Per-user notification suppression state."""

from typing import Iterable, Iterator, List

from .exceptions import UnknownNotificationKindError
from .kinds import NotificationKind, notification_names, resolve_notification_kind


class NotificationMask:
    """Set of notification kinds a user has opted out of.

    The in-memory representation is a set of ``NotificationKind`` members.
    ``to_int``/``from_int`` convert to the packed integer kept in storage,
    using each kind's explicit bit rather than its position in code.
    """

    __slots__ = ("_kinds",)

    def __init__(self, kinds: Iterable = ()):
        self._kinds = {resolve_notification_kind(kind) for kind in kinds}

    @classmethod
    def from_int(cls, value: int) -> "NotificationMask":
        """Decode a stored mask integer.

        Raises:
            ValueError: If value is negative
            UnknownNotificationKindError: If a bit is set that no kind owns
        """
        if value is None:
            return cls()
        if value < 0:
            raise ValueError(f"Notification mask must be non-negative, got {value}")

        kinds = set()
        remaining = value
        for kind in NotificationKind:
            if value & (1 << kind.bit):
                kinds.add(kind)
                remaining &= ~(1 << kind.bit)

        if remaining:
            raise UnknownNotificationKindError(
                f"Notification mask {value} has unknown bits set: {remaining:#x}"
            )
        return cls(kinds)

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "NotificationMask":
        """Build a mask from kind names (unknown names raise)."""
        return cls(names)

    @staticmethod
    def names() -> List[str]:
        """Canonical ordered list of maskable kind names."""
        return notification_names()

    def to_int(self) -> int:
        value = 0
        for kind in self._kinds:
            value |= 1 << kind.bit
        return value

    def masked(self, kind) -> bool:
        """Check whether ``kind`` is suppressed."""
        return resolve_notification_kind(kind) in self._kinds

    def set_masked(self, kind, masked: bool = True) -> None:
        """Suppress (``masked=True``) or re-enable a kind."""
        resolved = resolve_notification_kind(kind)
        if masked:
            self._kinds.add(resolved)
        else:
            self._kinds.discard(resolved)

    @property
    def ignored(self) -> List[str]:
        """Names of suppressed kinds, in canonical order."""
        return [kind.value for kind in sorted(self._kinds, key=lambda k: k.bit)]

    def __iter__(self) -> Iterator[NotificationKind]:
        return iter(sorted(self._kinds, key=lambda k: k.bit))

    def __len__(self) -> int:
        return len(self._kinds)

    def __contains__(self, kind) -> bool:
        try:
            return self.masked(kind)
        except UnknownNotificationKindError:
            return False

    def __eq__(self, other) -> bool:
        if not isinstance(other, NotificationMask):
            return NotImplemented
        return self._kinds == other._kinds

    def __repr__(self) -> str:
        return f"NotificationMask({self.ignored!r})"
