"""Timestamp utilities for UTC handling and storage formatting.

All timestamps in the marketplace are timezone-aware UTC datetimes. The
persistence layer stores them as ISO 8601 strings with a ``Z`` suffix, and
calendar dates (``arrived_at``, ``job_date``) as ``YYYY-MM-DD``.
"""

from datetime import date, datetime, timezone
from typing import Optional

STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Example:
        >>> utc_now().tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    Naive datetimes are treated as UTC; aware ones are converted.

    Args:
        dt: Datetime to convert (can be None)

    Returns:
        Timezone-aware datetime in UTC, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime for database storage.

    Example:
        >>> format_timestamp(datetime(2025, 11, 4, 12, 0, tzinfo=timezone.utc))
        '2025-11-04T12:00:00.000000Z'
    """
    dt_utc = ensure_utc(dt)
    if dt_utc is None:
        return None
    return dt_utc.strftime(STORAGE_FORMAT)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp back to a UTC datetime.

    Accepts the storage format as well as values without microseconds.
    Empty strings are treated like None.
    """
    if value is None or not value.strip():
        return None

    cleaned = value.strip().rstrip("Z")
    try:
        dt = datetime.strptime(cleaned, "%Y-%m-%dT%H:%M:%S.%f")
    except ValueError:
        dt = datetime.strptime(cleaned, "%Y-%m-%dT%H:%M:%S")

    return dt.replace(tzinfo=timezone.utc)


def format_date(value: Optional[date]) -> Optional[str]:
    """Format a calendar date as ``YYYY-MM-DD`` (None passes through)."""
    if value is None:
        return None
    return value.isoformat()


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a stored ``YYYY-MM-DD`` date; blank and None both give None."""
    if value is None or not value.strip():
        return None
    return date.fromisoformat(value.strip())
