from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from streakdsa.api.deps import get_streak_service
from streakdsa.features.streaks.milestones import evaluate_milestone, milestone_message
from streakdsa.features.streaks.service import StreakService

router = APIRouter(tags=["streaks"])


class ClaimRequest(BaseModel):
    streak: int = Field(..., ge=1)


@router.get("/v1/streaks/milestones/evaluate")
def evaluate(
    streak: int = Query(..., ge=0),
    pledge_complete: bool = Query(False),
):
    """Preview the reward a streak length would pay."""
    result = evaluate_milestone(streak, pledge_complete)
    return {
        "reward_amount": result.reward_amount,
        "milestone": result.milestone_tag.value if result.milestone_tag else None,
        "message": milestone_message(result.milestone_tag),
    }


@router.get("/v1/streaks/{user_id}")
async def get_streak(user_id: str, service: StreakService = Depends(get_streak_service)):
    return await service.get_state(user_id)


@router.post("/v1/streaks/{user_id}/recalculate")
async def recalculate(user_id: str, service: StreakService = Depends(get_streak_service)):
    totals = await service.recalculate(user_id)
    return totals.as_dict()


@router.post("/v1/streaks/{user_id}/freeze")
async def buy_freeze(user_id: str, service: StreakService = Depends(get_streak_service)):
    """Freeze the user's local today."""
    result = await service.on_freeze_purchased(user_id)
    return {
        "success": True,
        "date": result.day.isoformat(),
        "gems": result.balance,
        "streak": result.totals.as_dict(),
    }


@router.post("/v1/streaks/{user_id}/milestones/claim")
async def claim_milestone(
    user_id: str,
    req: ClaimRequest,
    service: StreakService = Depends(get_streak_service),
):
    result = await service.claim_milestone(user_id, req.streak)
    return result.as_dict()
