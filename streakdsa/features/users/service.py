"""
User profile service.
- onboard(store, user_id, ...): start (or restart) a pledge
- update_settings(store, user_id, ...)
- get_profile(store, user_id)
"""

from datetime import datetime
from typing import Optional

from streakdsa.core.config import settings
from streakdsa.core.errors import NotFoundError, ValidationError
from streakdsa.core.logging import log_event
from streakdsa.core.validation import parse_reminder_time, validate_timezone
from streakdsa.features.streaks import days as calendar
from streakdsa.features.streaks.engine import recalculate_user_streak
from streakdsa.features.streaks.store import DayStore
from streakdsa.models.streak import UserProfile

MAX_DAILY_PROBLEM_LIMIT = 10


def _check_pledge_days(pledge_days: int) -> int:
    if not settings.PLEDGE_MIN_DAYS <= pledge_days <= settings.PLEDGE_MAX_DAYS:
        raise ValidationError(
            f"pledge_days must be between {settings.PLEDGE_MIN_DAYS} and {settings.PLEDGE_MAX_DAYS}"
        )
    return pledge_days


def _check_limit(limit: int) -> int:
    if not 1 <= limit <= MAX_DAILY_PROBLEM_LIMIT:
        raise ValidationError(f"daily_problem_limit must be between 1 and {MAX_DAILY_PROBLEM_LIMIT}")
    return limit


async def get_profile(store: DayStore, user_id: str) -> UserProfile:
    user = await store.get_user(user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


async def onboard(
    store: DayStore,
    user_id: str,
    *,
    pledge_days: int,
    timezone: Optional[str] = None,
    reminder_time: Optional[str] = None,
    now: Optional[datetime] = None,
) -> UserProfile:
    """Start a pledge today in the user's timezone.

    Restarting keeps the gem balance and claimed milestones and rebuilds the
    cached aggregates from the existing day history. Pledge progress counts
    only days from the new start.
    """
    tz = validate_timezone(timezone or settings.DEFAULT_TIMEZONE)
    reminder = reminder_time or settings.DEFAULT_REMINDER_TIME
    parse_reminder_time(reminder)

    existing = await store.get_user(user_id)
    profile = UserProfile(
        user_id=user_id,
        timezone=tz,
        reminder_time=reminder,
        pledge_days=_check_pledge_days(pledge_days),
        pledge_start=calendar.today(tz, now),
        gems=existing.gems if existing else 0,
        daily_problem_limit=existing.daily_problem_limit if existing else settings.DEFAULT_DAILY_PROBLEM_LIMIT,
        claimed_milestones=list(existing.claimed_milestones) if existing else [],
    )
    async with store.transaction():
        await store.save_user(profile)
        if existing is not None:
            await recalculate_user_streak(store, user_id, now=now)
        saved = await get_profile(store, user_id)

    log_event(
        "info",
        "user.onboarded",
        user_id=user_id,
        event_type="user.onboarded",
        extra={"pledge_days": pledge_days, "timezone": tz, "restart": existing is not None},
    )
    return saved


async def update_settings(
    store: DayStore,
    user_id: str,
    *,
    timezone: Optional[str] = None,
    reminder_time: Optional[str] = None,
    daily_problem_limit: Optional[int] = None,
) -> UserProfile:
    async with store.transaction():
        user = await get_profile(store, user_id)
        if timezone is not None:
            user.timezone = validate_timezone(timezone)
        if reminder_time is not None:
            parse_reminder_time(reminder_time)
            user.reminder_time = reminder_time
        if daily_problem_limit is not None:
            user.daily_problem_limit = _check_limit(daily_problem_limit)
        return await store.save_user(user)
