"""Unit tests for the asynchronous mail queue.

The SMTP client is a Mock and ``sleep`` is injected, so retries run
instantly and no sockets are opened.
"""

import logging
import threading
from unittest.mock import Mock

import pytest

from marketplace.config.models import EmailConfig
from marketplace.notifications import MailDeliveryError, MailQueue, OutgoingMessage

SENDER = "Job Marketplace <noreply@example.com>"


def make_message(recipient_id=1, to="user1@example.com", kind="new_applicant"):
    return OutgoingMessage(
        kind=kind,
        recipient_id=recipient_id,
        to=to,
        locale="en",
        subject="Subject",
        text_body="Text",
        html_body="<p>Text</p>",
        dispatch_id="abc123",
    )


@pytest.fixture
def smtp_client():
    return Mock()


@pytest.fixture
def sleeps():
    return []


def build_queue(smtp_client, sleeps, **config):
    return MailQueue(
        smtp_client,
        SENDER,
        email_config=EmailConfig(**config),
        enqueue_timeout=0.01,
        sleep=sleeps.append,
    )


class TestOutgoingMessage:
    def test_to_email_keeps_content_language(self):
        message = make_message()
        message.locale = "sv"

        email = message.to_email(SENDER)

        assert email["Content-Language"] == "sv"
        assert email.get_content_type() == "multipart/alternative"
        assert email.get_body(("plain",)).get_content().strip() == "Text"


class TestDeliver:
    """Tests for single-message delivery with retry."""

    def test_success_first_attempt(self, smtp_client, sleeps):
        mail_queue = build_queue(smtp_client, sleeps)

        assert mail_queue.deliver(make_message()) is True

        smtp_client.send.assert_called_once()
        email = smtp_client.send.call_args[0][0]
        assert email["To"] == "user1@example.com"
        assert email["From"] == SENDER
        assert email["Content-Language"] == "en"
        assert sleeps == []
        assert mail_queue.stats.sent == 1

    def test_email_has_text_and_html_parts(self, smtp_client, sleeps):
        build_queue(smtp_client, sleeps).deliver(make_message())

        email = smtp_client.send.call_args[0][0]
        content_types = [part.get_content_type() for part in email.iter_parts()]
        assert content_types == ["text/plain", "text/html"]

    def test_retry_then_success(self, smtp_client, sleeps):
        smtp_client.send.side_effect = [MailDeliveryError("421 busy"), None]
        mail_queue = build_queue(smtp_client, sleeps, max_retries=3, retry_initial_delay=5)

        assert mail_queue.deliver(make_message()) is True

        assert smtp_client.send.call_count == 2
        assert sleeps == [5]
        assert mail_queue.stats.sent == 1
        assert mail_queue.stats.failed == 0

    def test_exponential_backoff_is_capped(self, smtp_client, sleeps):
        smtp_client.send.side_effect = MailDeliveryError("down")
        mail_queue = build_queue(
            smtp_client,
            sleeps,
            max_retries=5,
            retry_initial_delay=20,
            retry_backoff_multiplier=2.0,
        )

        mail_queue.deliver(make_message())

        assert sleeps == [20, 40, 60, 60, 60]

    def test_final_failure_is_dropped_not_raised(self, smtp_client, sleeps, caplog):
        smtp_client.send.side_effect = MailDeliveryError("550 rejected")
        mail_queue = build_queue(smtp_client, sleeps, max_retries=2)

        with caplog.at_level(logging.ERROR):
            assert mail_queue.deliver(make_message()) is False

        assert smtp_client.send.call_count == 3
        assert mail_queue.stats.failed == 1
        assert any(
            getattr(record, "event", None) == "mail.delivery.failed" for record in caplog.records
        )

    def test_no_retries(self, smtp_client, sleeps):
        smtp_client.send.side_effect = MailDeliveryError("down")
        mail_queue = build_queue(smtp_client, sleeps, max_retries=0)

        assert mail_queue.deliver(make_message()) is False
        assert smtp_client.send.call_count == 1
        assert sleeps == []

    def test_invalid_recipient_not_retried(self, smtp_client, sleeps):
        mail_queue = build_queue(smtp_client, sleeps)

        assert mail_queue.deliver(make_message(to="not an address")) is False

        smtp_client.send.assert_not_called()
        assert mail_queue.stats.failed == 1


class TestQueue:
    """Tests for enqueueing and the worker lifecycle."""

    def test_enqueue_returns_immediately(self, smtp_client, sleeps):
        mail_queue = build_queue(smtp_client, sleeps)

        mail_queue.enqueue(make_message())

        assert mail_queue.pending == 1
        assert mail_queue.stats.enqueued == 1
        smtp_client.send.assert_not_called()

    def test_full_queue_drops_message(self, smtp_client, sleeps, caplog):
        mail_queue = build_queue(smtp_client, sleeps, queue_size=1)

        with caplog.at_level(logging.ERROR):
            mail_queue.enqueue(make_message(1))
            mail_queue.enqueue(make_message(2))

        assert mail_queue.pending == 1
        assert mail_queue.stats.dropped == 1
        assert any(getattr(record, "event", None) == "mail.queue.full" for record in caplog.records)

    def test_stop_drains_pending_messages(self, smtp_client, sleeps):
        mail_queue = build_queue(smtp_client, sleeps)
        for recipient_id in (1, 2, 3):
            mail_queue.enqueue(make_message(recipient_id, to=f"user{recipient_id}@example.com"))

        mail_queue.start()
        assert mail_queue.is_running()
        mail_queue.stop(drain=True, timeout=5)

        assert not mail_queue.is_running()
        assert smtp_client.send.call_count == 3
        assert mail_queue.stats.sent == 3
        assert mail_queue.pending == 0

    def test_stop_without_drain_discards(self, smtp_client, sleeps):
        entered = threading.Event()
        release = threading.Event()

        def blocking_send(email):
            entered.set()
            release.wait(5)

        smtp_client.send.side_effect = blocking_send
        mail_queue = build_queue(smtp_client, sleeps)
        mail_queue.start()
        mail_queue.enqueue(make_message(1))
        assert entered.wait(5)
        mail_queue.enqueue(make_message(2, to="user2@example.com"))
        mail_queue.enqueue(make_message(3, to="user3@example.com"))

        threading.Timer(0.2, release.set).start()
        mail_queue.stop(drain=False, timeout=5)

        assert not mail_queue.is_running()
        assert smtp_client.send.call_count == 1
        assert mail_queue.stats.dropped == 2
        assert mail_queue.pending == 0

    def test_worker_survives_unexpected_error(self, smtp_client, sleeps):
        smtp_client.send.side_effect = [RuntimeError("boom"), None]
        mail_queue = build_queue(smtp_client, sleeps)
        mail_queue.enqueue(make_message(1))
        mail_queue.enqueue(make_message(2, to="user2@example.com"))

        mail_queue.start()
        mail_queue.stop(drain=True, timeout=5)

        stats = mail_queue.stats
        assert stats.failed == 1
        assert stats.sent == 1

    def test_stop_when_not_running_is_noop(self, smtp_client, sleeps):
        build_queue(smtp_client, sleeps).stop()

    def test_start_twice_keeps_one_worker(self, smtp_client, sleeps):
        mail_queue = build_queue(smtp_client, sleeps)
        mail_queue.start()
        first = mail_queue._thread

        mail_queue.start()

        assert mail_queue._thread is first
        mail_queue.stop(timeout=5)
