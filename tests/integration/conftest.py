"""Fixtures wiring the real stack over a temporary SQLite database.

Only the SMTP client is a Mock; messages travel through the real mail
queue worker.
"""

from dataclasses import dataclass
from unittest.mock import Mock

import pytest

from marketplace.config.models import EmailConfig, MatchingConfig
from marketplace.lifecycle import JobLifecycle
from marketplace.matching.engine import MatchEngine
from marketplace.notifications import MailQueue, NotificationDispatcher, TemplateRenderer, Translator
from marketplace.persistence import UserDirectory, get_session
from tests.helpers import seed_lookups

SENDER = "Job Marketplace <noreply@example.com>"


@dataclass
class Stack:
    smtp_client: Mock
    mail_queue: MailQueue
    dispatcher: NotificationDispatcher
    lifecycle: JobLifecycle

    def flush(self):
        """Stop the worker after every queued message was handled."""
        self.mail_queue.stop(drain=True, timeout=5)

    @property
    def sent(self):
        return [call.args[0] for call in self.smtp_client.send.call_args_list]

    def sent_to(self, address):
        return [email for email in self.sent if email["To"] == address]


@pytest.fixture
def stack(database):
    with get_session() as session:
        seed_lookups(session)

    smtp_client = Mock()
    mail_queue = MailQueue(
        smtp_client,
        SENDER,
        email_config=EmailConfig(max_retries=1, retry_initial_delay=1),
        sleep=lambda seconds: None,
    )
    directory = UserDirectory()
    dispatcher = NotificationDispatcher(
        delivery=mail_queue,
        renderer=TemplateRenderer(Translator()),
        match_engine=MatchEngine(directory, directory, config=MatchingConfig(radius_km=50)),
        admin_provider=directory.admins,
        profile_attributes=["phone", "zip", "city"],
    )
    mail_queue.start()

    yield Stack(smtp_client, mail_queue, dispatcher, JobLifecycle(dispatcher))

    if mail_queue.is_running():
        mail_queue.stop(drain=False, timeout=5)
