"""Test helpers for the marketplace notifier tests."""

from .factories import (
    NOW,
    RecordingDelivery,
    StaticDirectory,
    build_dispatcher,
    make_application,
    make_invoice,
    make_job,
    make_user,
    seed_lookups,
)

__all__ = [
    "NOW",
    "RecordingDelivery",
    "StaticDirectory",
    "build_dispatcher",
    "make_application",
    "make_invoice",
    "make_job",
    "make_user",
    "seed_lookups",
]
