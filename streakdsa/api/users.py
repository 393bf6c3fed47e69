from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from streakdsa.api.deps import Services, get_services
from streakdsa.features.users import service as user_service
from streakdsa.models.streak import UserProfile

router = APIRouter(tags=["users"])


class OnboardRequest(BaseModel):
    pledge_days: int
    timezone: Optional[str] = None
    reminder_time: Optional[str] = None


class SettingsRequest(BaseModel):
    timezone: Optional[str] = None
    reminder_time: Optional[str] = None
    daily_problem_limit: Optional[int] = Field(None, ge=1)


def _profile_payload(user: UserProfile) -> dict:
    return {
        "user_id": user.user_id,
        "timezone": user.timezone,
        "reminder_time": user.reminder_time,
        "pledge_days": user.pledge_days,
        "start_date": user.pledge_start.isoformat() if user.pledge_start else None,
        "daily_problem_limit": user.daily_problem_limit,
        "gems": user.gems,
        "claimed_milestones": list(user.claimed_milestones),
        **user.totals.as_dict(),
    }


@router.put("/v1/users/{user_id}", status_code=201)
async def onboard(user_id: str, req: OnboardRequest, services: Services = Depends(get_services)):
    """Start or restart the user's pledge."""
    user = await user_service.onboard(
        services.store,
        user_id,
        pledge_days=req.pledge_days,
        timezone=req.timezone,
        reminder_time=req.reminder_time,
        now=services.streaks.clock(),
    )
    return _profile_payload(user)


@router.get("/v1/users/{user_id}")
async def get_profile(user_id: str, services: Services = Depends(get_services)):
    return _profile_payload(await user_service.get_profile(services.store, user_id))


@router.patch("/v1/users/{user_id}/settings")
async def update_settings(user_id: str, req: SettingsRequest, services: Services = Depends(get_services)):
    user = await user_service.update_settings(
        services.store,
        user_id,
        timezone=req.timezone,
        reminder_time=req.reminder_time,
        daily_problem_limit=req.daily_problem_limit,
    )
    return _profile_payload(user)
