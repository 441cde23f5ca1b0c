"""Tests for logging configuration, formatters and component loggers."""

import json
import logging
import sys
from datetime import date
from enum import Enum

import pytest

from marketplace.logging import ComponentLoggerAdapter, get_logger
from marketplace.logging.config import (
    SERVICE_NAME,
    ContextualFilter,
    JSONFormatter,
    KeyValueFormatter,
    configure_logging,
)
from marketplace.logging.context import clear_log_context, log_context


class Color(Enum):
    RED = "red"


@pytest.fixture(autouse=True)
def clean_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def restore_root_logger():
    """configure_logging replaces the root handlers; put them back afterwards."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(message="Dispatched", **extra):
    return logging.getLogger("marketplace.test").makeRecord(
        "marketplace.test", logging.INFO, "test.py", 1, message, (), None, extra=extra or None
    )


def key_value_formatter():
    return KeyValueFormatter("[%(levelname)s] %(name)s: %(message)s")


class TestJSONFormatter:
    def test_mandatory_fields(self):
        log_obj = json.loads(JSONFormatter().format(make_record()))

        assert log_obj["level"] == "INFO"
        assert log_obj["logger"] == "marketplace.test"
        assert log_obj["message"] == "Dispatched"
        assert "name" not in log_obj

    def test_extra_fields(self):
        record = make_record(event="notification.dispatched", delivered=3, suppressed=0)

        log_obj = json.loads(JSONFormatter().format(record))

        assert log_obj["event"] == "notification.dispatched"
        assert log_obj["delivered"] == 3
        assert log_obj["suppressed"] == 0

    def test_non_json_values_are_converted(self):
        record = make_record(day=date(2026, 3, 2), color=Color.RED, ids={7})

        log_obj = json.loads(JSONFormatter().format(record))

        assert log_obj["day"] == "2026-03-02"
        assert log_obj["color"] == "red"
        assert log_obj["ids"] == [7]

    def test_timestamp_format(self):
        timestamp = json.loads(JSONFormatter().format(make_record()))["timestamp"]

        assert timestamp.endswith("Z")
        assert len(timestamp) == 24  # 2026-03-02T10:30:00.123Z

    def test_exception_included(self):
        try:
            raise RuntimeError("smtp down")
        except RuntimeError:
            record = logging.getLogger("t").makeRecord(
                "t", logging.ERROR, "x.py", 1, "failed", (), sys.exc_info()
            )

        log_obj = json.loads(JSONFormatter().format(record))

        assert "smtp down" in log_obj["exc_info"]


class TestKeyValueFormatter:
    def test_basic(self):
        output = key_value_formatter().format(make_record())
        assert output == "[INFO] marketplace.test: Dispatched"

    def test_extras_sorted_and_quoted(self):
        record = make_record(event="mail.delivery.failed", reason="550 rejected", attempt=3)

        output = key_value_formatter().format(record)

        assert output.endswith('attempt=3 event=mail.delivery.failed reason="550 rejected"')

    def test_value_rendering(self):
        record = make_record(flag=True, missing=None)

        output = key_value_formatter().format(record)

        assert "flag=true" in output
        assert "missing=null" in output

    def test_service_fields_hidden(self):
        record = make_record()
        ContextualFilter().filter(record)

        output = key_value_formatter().format(record)

        assert "service=" not in output
        assert "environment=" not in output


class TestContextualFilter:
    def test_static_fields(self):
        record = make_record()
        ContextualFilter(environment="test").filter(record)

        assert record.service == SERVICE_NAME
        assert record.environment == "test"

    def test_context_fields(self):
        with log_context(dispatch_id="d1", notification_kind="new_applicant"):
            record = make_record()
            ContextualFilter().filter(record)

        assert record.dispatch_id == "d1"
        assert record.notification_kind == "new_applicant"

    def test_call_site_extra_wins(self):
        with log_context(notification_kind="from_context"):
            record = make_record(notification_kind="from_call")
            ContextualFilter().filter(record)

        assert record.notification_kind == "from_call"

    def test_full_pipeline(self):
        with log_context(sweep_run_id="run-1"):
            record = make_record(event="sweep.completed")
            ContextualFilter(environment="test").filter(record)
            log_obj = json.loads(JSONFormatter().format(record))

        assert log_obj["sweep_run_id"] == "run-1"
        assert log_obj["event"] == "sweep.completed"
        assert log_obj["service"] == SERVICE_NAME


class TestComponentLogger:
    def test_plain_logger_without_component(self):
        assert isinstance(get_logger("marketplace.x"), logging.Logger)

    def test_component_added(self, caplog):
        logger = get_logger("marketplace.x", component="mail")
        assert isinstance(logger, ComponentLoggerAdapter)

        with caplog.at_level(logging.INFO, logger="marketplace.x"):
            logger.info("hello", extra={"event": "mail.queued"})

        record = caplog.records[-1]
        assert record.component == "mail"
        assert record.event == "mail.queued"

    def test_call_site_component_wins(self, caplog):
        logger = get_logger("marketplace.x", component="mail")

        with caplog.at_level(logging.INFO, logger="marketplace.x"):
            logger.info("hello", extra={"component": "sweep"})

        assert caplog.records[-1].component == "sweep"


class TestConfigureLogging:
    def test_invalid_level(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            configure_logging(level="INVALID")

    def test_invalid_format(self):
        with pytest.raises(ValueError, match="Invalid log format"):
            configure_logging(format_type="xml")

    @pytest.mark.parametrize(
        "format_type,formatter_cls", [("json", JSONFormatter), ("key-value", KeyValueFormatter)]
    )
    def test_installs_single_handler(self, restore_root_logger, format_type, formatter_cls):
        configure_logging(level="debug", format_type=format_type, environment="test")

        assert len(restore_root_logger.handlers) == 1
        handler = restore_root_logger.handlers[0]
        assert isinstance(handler.formatter, formatter_cls)
        assert restore_root_logger.level == logging.DEBUG
        assert any(isinstance(f, ContextualFilter) for f in handler.filters)
