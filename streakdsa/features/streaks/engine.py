"""
Full-history streak recalculation.

Every mutation recomputes the aggregates from scratch; nothing is patched
incrementally, so calling recalculate twice in a row is always a no-op.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from streakdsa.core.errors import NotFoundError
from streakdsa.core.logging import log_event
from streakdsa.features.streaks.days import calendar_day_difference, today as local_today
from streakdsa.features.streaks.store import DayStore
from streakdsa.models.streak import DayRecord, StreakTotals


def _current_streak(days: Sequence[DayRecord], today: date) -> int:
    # Liveness: most recent protected day must be today or yesterday.
    if calendar_day_difference(today, days[0].day) > 1:
        return 0

    count = 0
    for i, record in enumerate(days):
        if i > 0 and calendar_day_difference(days[i - 1].day, record.day) > 1:
            break
        # frozen-only days bridge the chain without adding to it
        if record.completed:
            count += 1
    return count


def _max_streak(days: Sequence[DayRecord]) -> int:
    best = 0
    run = 0
    for i, record in enumerate(days):
        if i > 0 and calendar_day_difference(days[i - 1].day, record.day) > 1:
            run = 0
        if record.completed:
            run += 1
            best = max(best, run)
    return best


def compute_streak(days: Sequence[DayRecord], today: date) -> StreakTotals:
    """Derive streak aggregates from a user's day history.

    Days that are neither completed nor frozen are ignored if present.
    """
    protected = sorted((d for d in days if d.protected), key=lambda d: d.day, reverse=True)
    if not protected:
        return StreakTotals()

    return StreakTotals(
        current_streak=_current_streak(protected, today),
        max_streak=_max_streak(protected),
        days_completed=len(protected),
    )


def pledge_progress(days: Sequence[DayRecord], pledge_start: Optional[date]) -> int:
    """Protected days on or after the pledge start.

    Restarting a pledge moves the start, so earlier history no longer counts
    toward it while still counting toward days_completed.
    """
    if pledge_start is None:
        return 0
    return sum(1 for d in days if d.protected and d.day >= pledge_start)


async def recalculate_user_streak(
    store: DayStore,
    user_id: str,
    *,
    now: Optional[datetime] = None,
) -> StreakTotals:
    """Recompute and persist a user's streak aggregates.

    Store failures propagate unchanged; a missing user is a caller bug.
    """
    user = await store.get_user(user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")

    days = await store.list_days(user_id)
    totals = compute_streak(days, local_today(user.timezone, now))
    await store.write_aggregates(user_id, totals)

    log_event(
        "info",
        "streak.recalculated",
        user_id=user_id,
        event_type="streak.recalculated",
        extra=totals.as_dict(),
    )
    return totals
