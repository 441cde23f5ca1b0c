"""Asynchronous mail delivery.

``MailQueue.enqueue`` puts a message on a bounded queue and returns at once.
A daemon worker thread turns each message into an EmailMessage and sends it
with retry and exponential backoff. A message that still fails after the
last retry is logged (``mail.delivery.failed``) and dropped; failures never
propagate back to the dispatcher.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from marketplace.config.models import EmailConfig
from marketplace.logging import get_logger
from marketplace.logging.context import log_context

from .models import MailDeliveryError, OutgoingMessage
from .smtp_client import SMTPClient, validate_recipient

logger = get_logger(__name__, component="mail")

MAX_RETRY_DELAY = 60.0
_STOP = object()


@dataclass
class MailQueueStats:
    enqueued: int = 0
    sent: int = 0
    failed: int = 0
    dropped: int = 0


class MailQueue:
    """Bounded in-memory mail queue drained by one worker thread."""

    def __init__(
        self,
        smtp_client: SMTPClient,
        sender_address: str,
        email_config: Optional[EmailConfig] = None,
        enqueue_timeout: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """
        Args:
            smtp_client: Anything with ``send(EmailMessage)`` raising MailDeliveryError
            sender_address: Value of the From header
            email_config: Retry and queue size settings
            enqueue_timeout: Seconds ``enqueue`` waits on a full queue before dropping
            sleep: Backoff sleep function (injectable for tests)
        """
        self.smtp_client = smtp_client
        self.sender_address = sender_address
        self.email_config = email_config or EmailConfig()
        self.enqueue_timeout = enqueue_timeout
        self.sleep = sleep
        self.logger = logger_instance or logger

        self._queue: queue.Queue = queue.Queue(maxsize=self.email_config.queue_size)
        self._thread: Optional[threading.Thread] = None
        self._stats = MailQueueStats()
        self._stats_lock = threading.Lock()

    @property
    def stats(self) -> MailQueueStats:
        with self._stats_lock:
            return MailQueueStats(**vars(self._stats))

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            self.logger.warning("Mail queue already running", extra={"event": "mail.queue.already_running"})
            return

        self._thread = threading.Thread(target=self._run, name="mail-queue", daemon=True)
        self._thread.start()
        self.logger.info(
            "Mail queue started",
            extra={"event": "mail.queue.started", "queue_size": self.email_config.queue_size},
        )

    def stop(self, drain: bool = True, timeout: Optional[float] = None) -> None:
        """Stop the worker.

        Args:
            drain: Deliver everything already queued before stopping;
                otherwise pending messages are discarded
            timeout: Seconds to wait for the worker thread
        """
        if not self.is_running():
            return

        if not drain:
            discarded = 0
            while True:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    break
                self._queue.task_done()
                discarded += 1
            if discarded:
                self._count("dropped", discarded)
                self.logger.warning(
                    f"Discarded {discarded} pending message(s) on shutdown",
                    extra={"event": "mail.queue.discarded", "discarded": discarded},
                )

        self._queue.put(_STOP)
        self._thread.join(timeout)
        self._thread = None
        self.logger.info(
            "Mail queue stopped",
            extra={"event": "mail.queue.stopped", **vars(self.stats)},
        )

    def enqueue(self, message: OutgoingMessage) -> None:
        """Hand ``message`` to the worker. Never raises on delivery problems."""
        try:
            self._queue.put(message, timeout=self.enqueue_timeout)
        except queue.Full:
            self._count("dropped")
            self.logger.error(
                f"Mail queue full; dropping {message.kind} for user {message.recipient_id}",
                extra={
                    "event": "mail.queue.full",
                    "recipient_id": message.recipient_id,
                    "notification_kind": message.kind,
                },
            )
            return

        self._count("enqueued")
        self.logger.debug(
            f"Queued {message.kind} for user {message.recipient_id}",
            extra={"event": "mail.queued", "pending": self._queue.qsize()},
        )

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self.deliver(item)
            except Exception as e:
                # Keep the worker alive whatever a single message does.
                self._count("failed")
                self.logger.error(
                    f"Unexpected error delivering mail: {e}",
                    exc_info=True,
                    extra={"event": "mail.delivery.failed", "error_type": type(e).__name__},
                )
            finally:
                self._queue.task_done()

    def deliver(self, message: OutgoingMessage) -> bool:
        """Send one message with retry/backoff. Returns True on success."""
        with log_context(dispatch_id=message.dispatch_id, notification_kind=message.kind):
            try:
                validate_recipient(message.to)
            except ValueError as e:
                self._count("failed")
                self.logger.error(
                    f"Not sending {message.kind} to user {message.recipient_id}: {e}",
                    extra={"event": "mail.delivery.failed", "recipient_id": message.recipient_id},
                )
                return False

            email = message.to_email(self.sender_address)
            max_attempts = self.email_config.max_retries + 1

            for attempt in range(1, max_attempts + 1):
                if attempt > 1:
                    delay = min(
                        self.email_config.retry_initial_delay
                        * (self.email_config.retry_backoff_multiplier ** (attempt - 2)),
                        MAX_RETRY_DELAY,
                    )
                    self.logger.warning(
                        f"Retrying {message.kind} for user {message.recipient_id} "
                        f"(attempt {attempt}/{max_attempts}) after {delay:.1f}s",
                        extra={"event": "mail.delivery.retry", "attempt": attempt, "delay": delay},
                    )
                    self.sleep(delay)

                try:
                    self.smtp_client.send(email)
                except MailDeliveryError as e:
                    if attempt < max_attempts:
                        self.logger.warning(
                            f"Delivery attempt {attempt}/{max_attempts} failed: {e}",
                            extra={"event": "mail.delivery.attempt_failed", "attempt": attempt},
                        )
                        continue
                    self._count("failed")
                    self.logger.error(
                        f"Dropping {message.kind} for user {message.recipient_id} "
                        f"after {max_attempts} attempt(s): {e}",
                        exc_info=True,
                        extra={
                            "event": "mail.delivery.failed",
                            "recipient_id": message.recipient_id,
                            "attempts": max_attempts,
                        },
                    )
                    return False

                self._count("sent")
                self.logger.info(
                    f"Sent {message.kind} to user {message.recipient_id} (attempts: {attempt})",
                    extra={
                        "event": "mail.delivery.sent",
                        "recipient_id": message.recipient_id,
                        "attempt": attempt,
                    },
                )
                return True

        return False

    def _count(self, field_name: str, amount: int = 1) -> None:
        with self._stats_lock:
            setattr(self._stats, field_name, getattr(self._stats, field_name) + amount)
