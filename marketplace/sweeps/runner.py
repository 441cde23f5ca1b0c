"""Reminder sweep: periodic discovery of time-based notifications."""

import threading
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Callable
from uuid import uuid4

from sqlalchemy.orm import Session

from marketplace.config.models import RemindersConfig
from marketplace.domain.kinds import NotificationKind
from marketplace.logging import get_logger
from marketplace.logging.context import log_context
from marketplace.notifications.dispatcher import NotificationDispatcher
from marketplace.persistence.database import get_session
from marketplace.persistence.repositories import (
    JobApplicationRepository,
    LanguageRepository,
    SkillRepository,
    UserRepository,
)
from marketplace.utils.timestamps import utc_now

from .models import SweepRunResult

logger = get_logger(__name__, component="sweep")


class ReminderSweep:
    """
    Finds overdue confirmations and incomplete applicant profiles.

    Each application is stamped after its dispatch, so it is picked up by at
    most one sweep. A failure on one application is logged and counted and
    the sweep moves on.
    """

    def __init__(
        self,
        reminders_config: RemindersConfig,
        dispatcher: NotificationDispatcher,
        session_factory: Callable[[], AbstractContextManager] = get_session,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            reminders_config: Which reminder types are enabled
            dispatcher: Dispatcher used for every notification
            session_factory: Context manager yielding a Session (commit on exit)
            clock: Source of "now" (injectable for tests)
        """
        self.config = reminders_config
        self.dispatcher = dispatcher
        self.session_factory = session_factory
        self.clock = clock
        self._lock = threading.Lock()

    def run_once(self) -> SweepRunResult:
        """Run one sweep; skipped (not queued) if a sweep is already running."""
        run_id = uuid4().hex
        result = SweepRunResult(run_started_at=self.clock())

        if not self._lock.acquire(blocking=False):
            with log_context(run_id=run_id):
                logger.warning(
                    "Sweep skipped: previous run still in progress",
                    extra={"event": "sweep.run.skipped", "reason": "lock_held"},
                )
            result.skipped = True
            result.run_finished_at = self.clock()
            return result

        try:
            with log_context(run_id=run_id):
                logger.info(
                    "Sweep run started",
                    extra={
                        "event": "sweep.run.started",
                        "confirmation_overdue": self.config.confirmation_overdue,
                        "data_reminders": self.config.data_reminders,
                    },
                )

                try:
                    with self.session_factory() as session:
                        if self.config.confirmation_overdue:
                            self._sweep_overdue(session, result)
                        if self.config.data_reminders:
                            self._sweep_data_reminders(session, result)
                except Exception as e:
                    result.error_message = str(e)
                    logger.error(
                        f"Sweep run failed: {e}",
                        exc_info=True,
                        extra={"event": "sweep.run.failed", "error_type": type(e).__name__},
                    )

                result.run_finished_at = self.clock()
                logger.info(
                    "Sweep run completed",
                    extra={
                        "event": "sweep.run.completed",
                        "duration_ms": int(result.duration_seconds * 1000),
                        "overdue_found": result.overdue_found,
                        "overdue_notified": result.overdue_notified,
                        "data_reminders_checked": result.data_reminders_checked,
                        "data_reminders_sent": result.data_reminders_sent,
                        "errors": result.errors,
                    },
                )
                return result
        finally:
            self._lock.release()

    def _sweep_overdue(self, session: Session, result: SweepRunResult) -> None:
        applications = JobApplicationRepository(session)
        users = UserRepository(session)
        now = self.clock()

        overdue = applications.confirmation_overdue(now)
        result.overdue_found = len(overdue)

        for application in overdue:
            with log_context(application_id=application.id, job_id=application.job.id):
                try:
                    owner = users.find(application.job.owner_user_id)
                    self.dispatcher.dispatch(
                        NotificationKind.ACCEPTED_APPLICANT_CONFIRMATION_OVERDUE,
                        {"job_application": application, "owner": owner},
                    )
                    applications.mark_overdue_notified(application.id, now)
                    result.overdue_notified += 1
                except Exception as e:
                    result.errors += 1
                    logger.error(
                        f"Overdue notification failed for application {application.id}: {e}",
                        exc_info=True,
                        extra={"event": "sweep.item.failed", "error_type": type(e).__name__},
                    )

    def _sweep_data_reminders(self, session: Session, result: SweepRunResult) -> None:
        applications = JobApplicationRepository(session)
        skills = SkillRepository(session)
        languages = LanguageRepository(session)
        now = self.clock()

        pending = applications.pending_data_reminders()
        for application in pending:
            result.data_reminders_checked += 1
            with log_context(application_id=application.id, job_id=application.job.id):
                try:
                    job = application.job
                    dispatch = self.dispatcher.dispatch(
                        NotificationKind.UPDATE_DATA_REMINDER,
                        {
                            "job_application": application,
                            "skills": skills.list_by_ids(job.skill_ids),
                            "languages": [
                                language
                                for language in (languages.get(i) for i in sorted(job.language_ids))
                                if language is not None
                            ],
                        },
                    )
                    # Stamp even when nothing was missing, so each
                    # application is checked once.
                    applications.mark_data_reminder_sent(application.id, now)
                    result.data_reminders_sent += len(dispatch.delivered)
                except Exception as e:
                    result.errors += 1
                    logger.error(
                        f"Data reminder failed for application {application.id}: {e}",
                        exc_info=True,
                        extra={"event": "sweep.item.failed", "error_type": type(e).__name__},
                    )
