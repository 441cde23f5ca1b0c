"""Data models for reminder sweep execution tracking."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class SweepRunResult:
    """
    Results from one reminder sweep.

    Attributes:
        run_started_at: UTC timestamp when the run began
        run_finished_at: UTC timestamp when the run completed
        overdue_found: Accepted applications past their confirmation deadline
        overdue_notified: Overdue applications dispatched and stamped
        data_reminders_checked: Applied applications checked for missing data
        data_reminders_sent: Applicants who were actually emailed (not masked,
            something missing)
        errors: Applications whose processing failed
        skipped: Whether the run was skipped because another run held the lock
        error_message: Set when the whole run failed (e.g. database unavailable)
    """

    run_started_at: datetime
    run_finished_at: Optional[datetime] = None
    overdue_found: int = 0
    overdue_notified: int = 0
    data_reminders_checked: int = 0
    data_reminders_sent: int = 0
    errors: int = 0
    skipped: bool = False
    error_message: Optional[str] = None

    @property
    def had_errors(self) -> bool:
        return self.errors > 0 or self.error_message is not None

    @property
    def duration_seconds(self) -> float:
        if self.run_finished_at is None:
            return 0.0
        return (self.run_finished_at - self.run_started_at).total_seconds()
