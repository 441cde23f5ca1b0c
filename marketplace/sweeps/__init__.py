"""Periodic reminder sweeps (overdue confirmations, incomplete profiles)."""

from .models import SweepRunResult
from .runner import ReminderSweep

__all__ = ["ReminderSweep", "SweepRunResult"]
