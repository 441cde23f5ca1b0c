"""Non-fatal configuration checks emitted as warnings."""

import warnings
from typing import Any, Dict, List

from .duration import DurationParseError, parse_duration


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Inspect raw configuration for settings that are valid but suspicious.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    matching = config_dict.get("matching") or {}
    if isinstance(matching, dict):
        radius = matching.get("radius_km")
        if isinstance(radius, (int, float)) and radius > 500:
            warning_messages.append(
                f"Large matching.radius_km ({radius}) will broadcast job matches very widely"
            )

    reminders = config_dict.get("reminders") or {}
    if isinstance(reminders, dict):
        interval = reminders.get("sweep_interval")
        if isinstance(interval, str):
            try:
                if parse_duration(interval) < 300:
                    warning_messages.append(
                        f"Short reminders.sweep_interval ({interval}) adds database load"
                    )
            except DurationParseError:
                # Reported as a validation error by the model
                pass

        if reminders.get("enabled", True) and reminders.get(
            "confirmation_overdue", True
        ) is False and reminders.get("data_reminders", True) is False:
            warning_messages.append(
                "Reminder sweep is enabled but both confirmation_overdue and "
                "data_reminders are disabled"
            )

        attributes = reminders.get("profile_attributes")
        if isinstance(attributes, list) and len(attributes) != len(set(attributes)):
            duplicates = sorted({a for a in attributes if attributes.count(a) > 1})
            warning_messages.append(
                f"Duplicate reminders.profile_attributes: {', '.join(map(str, duplicates))}"
            )

    email = config_dict.get("email") or {}
    if isinstance(email, dict) and email.get("max_retries") == 0:
        warning_messages.append(
            "email.max_retries is 0; messages are dropped after a single failed attempt"
        )

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """Emit each message through the warnings module."""
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
