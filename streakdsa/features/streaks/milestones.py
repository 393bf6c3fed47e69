"""Streak milestone detection and gem rewards. Pure functions only."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from streakdsa.core.config import settings


class MilestoneTag(str, Enum):
    FIRST_DAY = "FIRST_DAY"
    TEN_DAY_MULTIPLE = "TEN_DAY_MULTIPLE"
    SEVEN_DAY_STREAK = "7_DAY_STREAK"
    THIRTY_DAY_STREAK = "30_DAY_STREAK"
    PLEDGE_COMPLETE = "PLEDGE_COMPLETE"


@dataclass(frozen=True)
class MilestoneResult:
    reward_amount: int = 0
    milestone_tag: Optional[MilestoneTag] = None


# Streak lengths that can be claimed once each for a one-off reward.
CLAIMABLE_MILESTONES = (1, 7, 14, 21, 30, 50, 75, 100, 150, 200, 365)

_MESSAGES = {
    MilestoneTag.FIRST_DAY: "Day one done. The streak starts here!",
    MilestoneTag.TEN_DAY_MULTIPLE: "Another ten days in the bag. Keep going!",
    MilestoneTag.SEVEN_DAY_STREAK: "7-day streak achieved! +{week} bonus gems!",
    MilestoneTag.THIRTY_DAY_STREAK: "30-day streak achieved! +{month} bonus gems!",
    MilestoneTag.PLEDGE_COMPLETE: "Pledge completed! +{pledge} bonus gems! You did it!",
}


def evaluate_milestone(
    new_streak: int,
    pledge_complete: bool,
    *,
    week_bonus: Optional[int] = None,
    month_bonus: Optional[int] = None,
    pledge_bonus: Optional[int] = None,
) -> MilestoneResult:
    """Map a freshly reached streak length to a reward and a display tag.

    Rules run in order; a later match replaces the tag while rewards add up.
    PLEDGE_COMPLETE therefore always wins the tag.
    """
    week = settings.WEEK_BONUS if week_bonus is None else week_bonus
    month = settings.MONTH_BONUS if month_bonus is None else month_bonus
    pledge = settings.PLEDGE_BONUS if pledge_bonus is None else pledge_bonus

    reward = 0
    tag: Optional[MilestoneTag] = None

    if new_streak == 1:
        tag = MilestoneTag.FIRST_DAY
    if new_streak > 0 and new_streak % 10 == 0:
        tag = MilestoneTag.TEN_DAY_MULTIPLE
    if new_streak == 7:
        reward += week
        tag = MilestoneTag.SEVEN_DAY_STREAK
    if new_streak == 30:
        reward += month
        tag = MilestoneTag.THIRTY_DAY_STREAK
    if pledge_complete:
        reward += pledge
        tag = MilestoneTag.PLEDGE_COMPLETE

    return MilestoneResult(reward_amount=reward, milestone_tag=tag)


def milestone_message(tag: Optional[MilestoneTag]) -> Optional[str]:
    if tag is None:
        return None
    return _MESSAGES[tag].format(
        week=settings.WEEK_BONUS,
        month=settings.MONTH_BONUS,
        pledge=settings.PLEDGE_BONUS,
    )


def claim_reward(streak: int) -> Optional[int]:
    """One-off reward for a claimable milestone, or None if not claimable."""
    if streak not in CLAIMABLE_MILESTONES:
        return None
    if streak >= 100:
        return settings.MONTH_BONUS * 2
    if streak >= 30:
        return settings.MONTH_BONUS
    if streak >= 7:
        return settings.WEEK_BONUS
    return settings.GEMS_EASY
