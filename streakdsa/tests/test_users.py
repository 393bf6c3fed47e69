from datetime import date

import pytest

from streakdsa.core.errors import NotFoundError, ValidationError
from streakdsa.features.users import service as user_service


@pytest.mark.asyncio
async def test_onboard_new_user(store, clock):
    user = await user_service.onboard(store, "u1", pledge_days=30, timezone="Asia/Tokyo", now=clock())

    assert user.pledge_start == date(2026, 3, 11)  # already tomorrow in Tokyo
    assert user.reminder_time == "22:00"
    assert user.daily_problem_limit == 2
    assert user.gems == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"pledge_days": 3},
        {"pledge_days": 400},
        {"pledge_days": 30, "timezone": "Nowhere/Land"},
        {"pledge_days": 30, "reminder_time": "7pm"},
    ],
)
async def test_onboard_rejects_bad_input(store, kwargs):
    with pytest.raises(ValidationError):
        await user_service.onboard(store, "u1", **kwargs)
    assert await store.get_user("u1") is None


@pytest.mark.asyncio
async def test_restart_keeps_gems_and_rebuilds_aggregates(store, services, make_user, clock):
    await make_user("u1", gems=75)
    await services.streaks.on_activity_logged("u1", date(2026, 3, 10))

    user = await user_service.onboard(store, "u1", pledge_days=60, now=clock())

    assert user.gems == 75
    assert user.pledge_days == 60
    assert user.current_streak == 1


@pytest.mark.asyncio
async def test_restart_counts_pledge_from_new_start(store, services, make_user, clock):
    await make_user("u1", claimed_milestones=[1, 7])
    for d in range(1, 11):
        await services.streaks.on_activity_logged("u1", date(2026, 3, d))

    user = await user_service.onboard(store, "u1", pledge_days=7, now=clock())
    pledge = (await services.streaks.get_state("u1"))["pledge"]

    assert user.days_completed == 10
    assert user.claimed_milestones == [1, 7]
    assert pledge["start_date"] == "2026-03-10"
    assert pledge["days_completed"] == 1
    assert pledge["days_remaining"] == 7
    assert pledge["complete"] is False

@pytest.mark.asyncio
async def test_update_settings(store, make_user):
    await make_user("u1")

    user = await user_service.update_settings(store, "u1", timezone="Europe/Paris", daily_problem_limit=4)

    assert user.timezone == "Europe/Paris"
    assert user.daily_problem_limit == 4
    with pytest.raises(ValidationError):
        await user_service.update_settings(store, "u1", daily_problem_limit=11)
    with pytest.raises(NotFoundError):
        await user_service.update_settings(store, "ghost", timezone="UTC")
