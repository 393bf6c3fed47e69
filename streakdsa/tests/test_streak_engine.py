"""Full-history streak recalculation."""

from datetime import date, timedelta

import pytest

from streakdsa.core.errors import NotFoundError
from streakdsa.features.streaks.engine import compute_streak, recalculate_user_streak
from streakdsa.models.streak import DayRecord, StreakTotals

TODAY = date(2026, 3, 10)


def _day(offset: int, *, completed: bool = True, frozen: bool = False) -> DayRecord:
    return DayRecord(user_id="u1", day=TODAY - timedelta(days=offset), completed=completed, frozen=frozen)


def test_empty_history_is_all_zero():
    assert compute_streak([], TODAY) == StreakTotals(0, 0, 0)


def test_consecutive_chain_ending_today():
    totals = compute_streak([_day(0), _day(1), _day(2)], TODAY)
    assert totals == StreakTotals(current_streak=3, max_streak=3, days_completed=3)


def test_chain_ending_yesterday_is_still_alive():
    totals = compute_streak([_day(1), _day(2)], TODAY)
    assert totals.current_streak == 2


def test_chain_ending_two_days_ago_is_dead():
    totals = compute_streak([_day(2), _day(3), _day(4)], TODAY)
    assert totals.current_streak == 0
    assert totals.max_streak == 3


def test_gap_kills_current_but_not_max():
    totals = compute_streak([_day(0), _day(2)], TODAY)
    assert totals == StreakTotals(current_streak=1, max_streak=1, days_completed=2)


def test_freeze_bridges_without_incrementing():
    days = [_day(0), _day(1, completed=False, frozen=True), _day(2)]
    totals = compute_streak(days, TODAY)
    assert totals.current_streak == 2
    assert totals.days_completed == 3
    assert totals.max_streak == 2


def test_frozen_only_history_keeps_zero_streak():
    totals = compute_streak([_day(0, completed=False, frozen=True)], TODAY)
    assert totals == StreakTotals(current_streak=0, max_streak=0, days_completed=1)


def test_completed_wins_when_both_flags_set():
    totals = compute_streak([_day(0, frozen=True)], TODAY)
    assert totals.current_streak == 1


def test_unprotected_rows_are_ignored():
    days = [_day(0), _day(1, completed=False), _day(2)]
    totals = compute_streak(days, TODAY)
    # Row for day 1 carries no protection, so it is a real gap.
    assert totals.current_streak == 1
    assert totals.days_completed == 2


def test_max_streak_tracks_longest_run():
    days = [_day(0), _day(1)] + [_day(i) for i in range(5, 10)]
    totals = compute_streak(days, TODAY)
    assert totals.current_streak == 2
    assert totals.max_streak == 5


def test_input_order_does_not_matter():
    days = [_day(2), _day(0), _day(1)]
    assert compute_streak(days, TODAY).current_streak == 3


@pytest.mark.asyncio
async def test_recalculate_persists_aggregates(store, make_user, clock):
    await make_user("u1")
    await store.upsert_day("u1", date(2026, 3, 10), completed=True)
    await store.upsert_day("u1", date(2026, 3, 9), completed=True)

    totals = await recalculate_user_streak(store, "u1", now=clock())
    user = await store.get_user("u1")

    assert totals == StreakTotals(2, 2, 2)
    assert user.totals == totals


@pytest.mark.asyncio
async def test_recalculate_twice_is_idempotent(store, make_user, clock):
    await make_user("u1")
    await store.upsert_day("u1", date(2026, 3, 10), completed=True)
    await store.upsert_day("u1", date(2026, 3, 8), frozen=True)

    first = await recalculate_user_streak(store, "u1", now=clock())
    second = await recalculate_user_streak(store, "u1", now=clock())
    assert first == second


@pytest.mark.asyncio
async def test_recalculate_overwrites_stale_cache(store, make_user, clock):
    await make_user("u1", current_streak=40, max_streak=40, days_completed=40)

    totals = await recalculate_user_streak(store, "u1", now=clock())

    assert totals == StreakTotals()
    assert (await store.get_user("u1")).max_streak == 0


@pytest.mark.asyncio
async def test_recalculate_uses_user_timezone(store, make_user, clock):
    # 15:00 UTC on 2026-03-10 is already 2026-03-11 in Kiritimati (UTC+14).
    await make_user("u1", timezone="Pacific/Kiritimati")
    await store.upsert_day("u1", date(2026, 3, 9), completed=True)

    totals = await recalculate_user_streak(store, "u1", now=clock())
    assert totals.current_streak == 0


@pytest.mark.asyncio
async def test_recalculate_missing_user(store, clock):
    with pytest.raises(NotFoundError):
        await recalculate_user_streak(store, "ghost", now=clock())
