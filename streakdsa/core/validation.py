"""
Boundary validation for user-supplied calendar settings.

Reminder times and timezones are checked here, before anything reaches the
streak core. The core assumes its inputs already passed these checks.
"""

import re
from typing import Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from streakdsa.core.errors import ValidationError

# 24-hour, zero-padded, no seconds, no AM/PM suffix.
REMINDER_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_reminder_time(value: str) -> Tuple[int, int]:
    """Parse "HH:MM" into (hours, minutes)."""
    match = REMINDER_TIME_RE.match(value or "")
    if not match:
        raise ValidationError(f"Invalid time format (HH:MM): {value!r}")
    return int(match.group(1)), int(match.group(2))


def is_valid_timezone(name: str) -> bool:
    if not name or name != name.strip():
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, KeyError):
        return False
    return True


def validate_timezone(name: str) -> str:
    """Return the IANA identifier unchanged, or raise ValidationError."""
    if not is_valid_timezone(name):
        raise ValidationError(f"Unknown timezone: {name!r}")
    return name
