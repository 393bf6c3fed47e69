"""
Timezone-aware calendar arithmetic.

Two different notions of "today" exist and must not be mixed:
- today() returns a calendar date token (what gets stored on day records).
- real_start_of_day() returns the absolute instant the user's local day began.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(now: Optional[datetime]) -> datetime:
    if now is None:
        return utc_now()
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _local_now(tz: str, now: Optional[datetime]) -> datetime:
    return ensure_aware(now).astimezone(ZoneInfo(tz))


def today(tz: str, now: Optional[datetime] = None) -> date:
    """Calendar date of `now` as observed in `tz`."""
    return _local_now(tz, now).date()


def yesterday(tz: str, now: Optional[datetime] = None) -> date:
    return today(tz, now) - timedelta(days=1)


def real_start_of_day(tz: str, now: Optional[datetime] = None) -> datetime:
    """Local midnight of the current local day, as an aware UTC instant."""
    zone = ZoneInfo(tz)
    local_day = _local_now(tz, now).date()
    return datetime.combine(local_day, time(0, 0), tzinfo=zone).astimezone(timezone.utc)


def _split_hhmm(reminder_time: str) -> tuple[int, int]:
    hours, minutes = reminder_time.split(":")
    return int(hours), int(minutes)


def deadline(tz: str, reminder_time: str, now: Optional[datetime] = None) -> datetime:
    """Instant by which today's activity must be logged.

    Computed as an absolute offset from real_start_of_day, so on DST
    transition days it lands one hour off the wall-clock reminder time.
    """
    hours, minutes = _split_hhmm(reminder_time)
    return real_start_of_day(tz, now) + timedelta(hours=hours, minutes=minutes)


def is_deadline_passed(tz: str, reminder_time: str, now: Optional[datetime] = None) -> bool:
    moment = ensure_aware(now)
    return moment >= deadline(tz, reminder_time, moment)


def calendar_day_difference(later: date, earlier: date) -> int:
    return (later - earlier).days


def pledge_end_date(start_date: date, pledge_days: int) -> date:
    return start_date + timedelta(days=pledge_days)


def days_remaining(start_date: date, pledge_days: int, tz: str, now: Optional[datetime] = None) -> int:
    remaining = calendar_day_difference(pledge_end_date(start_date, pledge_days), today(tz, now))
    return max(0, remaining)


def format_time_remaining(deadline_at: datetime, now: Optional[datetime] = None) -> str:
    diff = deadline_at - ensure_aware(now)
    seconds = int(diff.total_seconds())
    if seconds <= 0:
        return "Deadline passed"
    hours, rest = divmod(seconds, 3600)
    minutes = rest // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
