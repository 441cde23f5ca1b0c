"""Scheduling of periodic reminder sweeps."""

from .service import SWEEP_JOB_ID, SchedulerService

__all__ = ["SchedulerService", "SWEEP_JOB_ID"]
