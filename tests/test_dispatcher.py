"""Unit tests for NotificationDispatcher."""

import logging

import pytest

from marketplace.domain.kinds import NotificationKind, TransactionalKind
from marketplace.logging.context import get_log_context
from marketplace.notifications import (
    NOTIFIER_REGISTRY,
    NotificationDispatcher,
    NotificationTemplateError,
    PayloadContractError,
    TemplateRenderer,
    Translator,
    UnknownNotificationKindError,
)
from tests.helpers import RecordingDelivery, build_dispatcher, make_user


def write_catalog(directory, text):
    (directory / "en.yml").write_text(text, encoding="utf-8")


class TestDispatch:
    """Tests for dispatch routing."""

    def test_dispatch_by_enum_member(self):
        delivery = RecordingDelivery()
        result = build_dispatcher(delivery).dispatch(
            TransactionalKind.RESET_PASSWORD, {"user": make_user(), "token": "abc"}
        )

        assert result.kind == "reset_password"
        assert result.delivered == [1]
        assert len(delivery.messages) == 1

    def test_dispatch_by_name(self):
        result = build_dispatcher().dispatch(
            "marketing", {"user": make_user(), "campaign": "Autumn"}
        )
        assert result.kind == "marketing"

    def test_unknown_kind_raises_and_logs(self, caplog):
        dispatcher = build_dispatcher()

        with caplog.at_level(logging.ERROR):
            with pytest.raises(UnknownNotificationKindError):
                dispatcher.dispatch("carrier_pigeon", {})

        assert any(
            getattr(record, "event", None) == "notification.unknown_kind"
            for record in caplog.records
        )

    def test_each_dispatch_gets_its_own_id(self):
        dispatcher = build_dispatcher()
        payload = {"user": make_user(), "campaign": "Autumn"}

        first = dispatcher.dispatch("marketing", payload)
        second = dispatcher.dispatch("marketing", payload)

        assert first.dispatch_id != second.dispatch_id
        assert len(first.dispatch_id) == 12

    def test_log_context_is_restored(self):
        build_dispatcher().dispatch("marketing", {"user": make_user(), "campaign": "Autumn"})
        assert "dispatch_id" not in get_log_context()

    def test_log_context_restored_after_failure(self):
        with pytest.raises(PayloadContractError):
            build_dispatcher().dispatch("marketing", {"user": make_user()})
        assert "notification_kind" not in get_log_context()


class TestRegistryOverride:
    def test_kinds_default_to_full_registry(self):
        dispatcher = build_dispatcher()
        assert set(dispatcher.kinds) == set(NOTIFIER_REGISTRY)

    def test_partial_registry(self):
        registry = {
            NotificationKind.MARKETING: NOTIFIER_REGISTRY[NotificationKind.MARKETING],
        }
        dispatcher = NotificationDispatcher(delivery=RecordingDelivery(), registry=registry)

        assert dispatcher.kinds == [NotificationKind.MARKETING]
        with pytest.raises(UnknownNotificationKindError):
            dispatcher.notifier_for("new_applicant")

    def test_notifier_for_returns_shared_instance(self):
        dispatcher = build_dispatcher()
        assert dispatcher.notifier_for("job_match") is dispatcher.notifier_for(
            NotificationKind.JOB_MATCH
        )


class TestRenderFailures:
    """Render errors propagate to the caller."""

    def test_missing_template_text(self, tmp_path):
        write_catalog(
            tmp_path,
            "en:\n  mailer:\n    greeting: 'Hi'\n    signature: 'Bye'\n    footer: 'x'\n",
        )
        renderer = TemplateRenderer(Translator(locales_dir=tmp_path))
        delivery = RecordingDelivery()
        dispatcher = NotificationDispatcher(delivery=delivery, renderer=renderer)

        with pytest.raises(NotificationTemplateError):
            dispatcher.dispatch("reset_password", {"user": make_user(), "token": "abc"})

        assert delivery.messages == []
