"""Scheduler service for periodic reminder sweeps."""

import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from marketplace.logging import get_logger

logger = get_logger(__name__, component="scheduler")

SWEEP_JOB_ID = "reminder-sweep"


class SchedulerService:
    """
    Runs the reminder sweep on an interval with APScheduler.

    The BackgroundScheduler works in its own thread so the main thread stays
    free for signal handling. Runs never overlap and delayed runs coalesce
    into one.
    """

    def __init__(
        self,
        sweep_callable: Callable[[], object],
        interval_seconds: int,
        run_immediately: bool = True,
        shutdown_event: Optional[threading.Event] = None,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        """
        Args:
            sweep_callable: Called on each tick (normally ``ReminderSweep.run_once``)
            interval_seconds: Seconds between runs
            run_immediately: Run the first sweep at start instead of after one interval
            shutdown_event: Set on shutdown so the main loop can exit
            scheduler: Pre-built scheduler (for tests)
        """
        self.sweep_callable = sweep_callable
        self.interval_seconds = interval_seconds
        self.run_immediately = run_immediately
        self.shutdown_event = shutdown_event
        self.scheduler = scheduler or BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": interval_seconds,
            },
            timezone=timezone.utc,
        )

    def start(self) -> None:
        """Register the sweep job and start the scheduler thread."""
        if self.scheduler.running:
            logger.warning(
                "Scheduler already running", extra={"event": "scheduler.already_running"}
            )
            return

        next_run = datetime.now(timezone.utc) if self.run_immediately else None
        job_options = {"next_run_time": next_run} if next_run else {}

        self.scheduler.add_job(
            func=self.sweep_callable,
            trigger=IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc),
            id=SWEEP_JOB_ID,
            name="Reminder sweep",
            replace_existing=True,
            **job_options,
        )
        self.scheduler.start()

        logger.info(
            f"Scheduler started with interval: {self.interval_seconds} seconds",
            extra={
                "event": "scheduler.started",
                "interval_seconds": self.interval_seconds,
                "run_immediately": self.run_immediately,
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """Stop the scheduler; with ``wait`` the running sweep finishes first."""
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def trigger_now(self):
        """Run the sweep synchronously in the calling thread."""
        logger.info("Triggering immediate sweep", extra={"event": "scheduler.trigger_now"})
        return self.sweep_callable()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(SWEEP_JOB_ID)
        return job.next_run_time if job else None
