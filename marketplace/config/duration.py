"""Duration parsing for interval settings such as ``reminders.sweep_interval``."""

import re

_ISO_PATTERN = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)
_HUMAN_PATTERN = re.compile(r"(\d+)([smhd])")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed or is out of range."""

    pass


def parse_duration(duration_str: str) -> int:
    """
    Parse a duration string to seconds.

    Accepts human-readable values ("30s", "15m", "1h", "1h30m", "2d") and
    ISO-8601 durations ("PT15M", "PT1H30M", "P1D").

    Raises:
        DurationParseError: If the string is empty, malformed or zero

    Examples:
        >>> parse_duration("1h30m")
        5400
        >>> parse_duration("PT15M")
        900
    """
    if duration_str is None or not str(duration_str).strip():
        raise DurationParseError("Duration string cannot be empty")

    value = re.sub(r"\s+", "", str(duration_str))

    if value.upper().startswith("P"):
        match = _ISO_PATTERN.match(value.upper())
        if not match or value.upper() in ("P", "PT"):
            raise DurationParseError(
                f"Invalid ISO-8601 duration: '{duration_str}'. Expected e.g. 'PT15M' or 'P1D'"
            )
        parts = {name: int(num) for name, num in match.groupdict().items() if num}
        total = (
            parts.get("days", 0) * 86400
            + parts.get("hours", 0) * 3600
            + parts.get("minutes", 0) * 60
            + parts.get("seconds", 0)
        )
    else:
        lowered = value.lower()
        pairs = _HUMAN_PATTERN.findall(lowered)
        if not pairs or "".join(num + unit for num, unit in pairs) != lowered:
            raise DurationParseError(
                f"Invalid duration: '{duration_str}'. "
                "Use digits with units s, m, h or d (e.g. '15m', '1h30m')"
            )
        total = sum(int(num) * _UNIT_SECONDS[unit] for num, unit in pairs)

    if total == 0:
        raise DurationParseError(f"Duration cannot be zero: '{duration_str}'")

    return total


def validate_duration_range(
    duration_seconds: int,
    min_seconds: int = 60,
    max_seconds: int = 86400,
) -> None:
    """
    Check that a duration lies within [min_seconds, max_seconds].

    Raises:
        DurationParseError: If the duration is outside the range
    """
    if duration_seconds < min_seconds:
        raise DurationParseError(
            f"Interval too short: {format_seconds(duration_seconds)}. "
            f"Minimum is {format_seconds(min_seconds)}."
        )
    if duration_seconds > max_seconds:
        raise DurationParseError(
            f"Interval too long: {format_seconds(duration_seconds)}. "
            f"Maximum is {format_seconds(max_seconds)}."
        )


def format_seconds(seconds: int) -> str:
    """Render seconds with the largest whole unit, e.g. "15 minutes"."""
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'s' if count != 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"
