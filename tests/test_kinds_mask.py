"""Unit tests for notification kinds and the per-user notification mask.

The canonical order of kinds is part of the storage format, so it is pinned
here explicitly. A failure in TestCanonicalOrder means stored masks would
change meaning.
"""

import pytest

from marketplace.domain.exceptions import UnknownNotificationKindError
from marketplace.domain.kinds import (
    NotificationKind,
    TransactionalKind,
    notification_names,
    resolve_kind,
    resolve_notification_kind,
)
from marketplace.domain.mask import NotificationMask

CANONICAL_ORDER = [
    "accepted_applicant_confirmation_overdue",
    "accepted_applicant_withdrawn",
    "applicant_accepted",
    "applicant_will_perform",
    "invoice_created",
    "job_user_performed",
    "job_cancelled",
    "new_applicant",
    "user_job_match",
    "new_chat_message",
    "new_job_comment",
    "applicant_rejected",
    "job_match",
    "new_applicant_job_info",
    "applicant_will_perform_job_info",
    "failed_to_activate_invoice",
    "update_data_reminder",
    "marketing",
]


class TestCanonicalOrder:
    """The ordered list of maskable kinds is fixed."""

    def test_names_in_canonical_order(self):
        assert notification_names() == CANONICAL_ORDER

    def test_bits_are_contiguous_from_zero(self):
        bits = sorted(kind.bit for kind in NotificationKind)
        assert bits == list(range(len(CANONICAL_ORDER)))

    def test_bit_matches_position(self):
        for position, name in enumerate(CANONICAL_ORDER):
            assert NotificationKind(name).bit == position

    def test_transactional_kinds_are_not_maskable(self):
        for kind in TransactionalKind:
            assert kind.value not in CANONICAL_ORDER


class TestResolveKind:
    def test_resolve_by_name(self):
        assert resolve_notification_kind("new_applicant") is NotificationKind.NEW_APPLICANT

    def test_resolve_member_passthrough(self):
        assert resolve_notification_kind(NotificationKind.MARKETING) is NotificationKind.MARKETING

    def test_transactional_name_is_not_maskable(self):
        with pytest.raises(UnknownNotificationKindError):
            resolve_notification_kind("reset_password")

    def test_resolve_any_kind(self):
        assert resolve_kind("reset_password") is TransactionalKind.RESET_PASSWORD
        assert resolve_kind("job_match") is NotificationKind.JOB_MATCH

    def test_unknown_name_raises(self):
        with pytest.raises(UnknownNotificationKindError, match="no_such_kind"):
            resolve_kind("no_such_kind")

    def test_unknown_kind_error_is_value_error(self):
        """Callers catching ValueError also see unknown kinds."""
        with pytest.raises(ValueError):
            resolve_kind("bogus")


class TestNotificationMask:
    """Test NotificationMask encoding and set operations."""

    def test_empty_mask(self):
        mask = NotificationMask()
        assert mask.to_int() == 0
        assert mask.ignored == []
        assert len(mask) == 0

    def test_single_kind_uses_its_bit(self):
        mask = NotificationMask(["new_applicant"])
        assert mask.to_int() == 1 << 7

    def test_first_and_last_bits(self):
        mask = NotificationMask(
            [NotificationKind.ACCEPTED_APPLICANT_CONFIRMATION_OVERDUE, NotificationKind.MARKETING]
        )
        assert mask.to_int() == 1 | (1 << 17)

    def test_round_trip_every_subset_of_singletons(self):
        for kind in NotificationKind:
            mask = NotificationMask([kind])
            assert NotificationMask.from_int(mask.to_int()) == mask

    def test_round_trip_all_kinds(self):
        mask = NotificationMask(NotificationKind)
        decoded = NotificationMask.from_int(mask.to_int())
        assert decoded.ignored == CANONICAL_ORDER

    def test_ignored_is_canonically_ordered(self):
        mask = NotificationMask(["marketing", "job_cancelled", "invoice_created"])
        assert mask.ignored == ["invoice_created", "job_cancelled", "marketing"]

    def test_set_masked_then_unset_is_symmetric(self):
        mask = NotificationMask(["job_match"])
        before = mask.to_int()

        mask.set_masked("new_chat_message", True)
        assert mask.masked("new_chat_message")
        mask.set_masked("new_chat_message", False)

        assert not mask.masked("new_chat_message")
        assert mask.to_int() == before

    def test_unsetting_unmasked_kind_is_noop(self):
        mask = NotificationMask()
        mask.set_masked("marketing", False)
        assert mask.to_int() == 0

    def test_from_int_rejects_unknown_bits(self):
        with pytest.raises(UnknownNotificationKindError):
            NotificationMask.from_int(1 << 18)

    def test_from_int_rejects_negative(self):
        with pytest.raises(ValueError):
            NotificationMask.from_int(-1)

    def test_from_names_rejects_unknown(self):
        with pytest.raises(UnknownNotificationKindError):
            NotificationMask.from_names(["new_applicant", "carrier_pigeon"])

    def test_masked_rejects_unknown_name(self):
        with pytest.raises(UnknownNotificationKindError):
            NotificationMask().masked("carrier_pigeon")

    def test_contains_tolerates_unknown_name(self):
        mask = NotificationMask(["marketing"])
        assert "marketing" in mask
        assert "carrier_pigeon" not in mask

    def test_iteration_yields_members_in_bit_order(self):
        mask = NotificationMask(["marketing", "applicant_accepted"])
        assert list(mask) == [NotificationKind.APPLICANT_ACCEPTED, NotificationKind.MARKETING]
