"""Utility functions for time handling and geographic distance."""

from .geo import haversine_km
from .timestamps import (
    ensure_utc,
    format_date,
    format_timestamp,
    parse_date,
    parse_timestamp,
    utc_now,
)

__all__ = [
    # Timestamps
    "utc_now",
    "ensure_utc",
    "format_timestamp",
    "parse_timestamp",
    "format_date",
    "parse_date",
    # Geo
    "haversine_km",
]
