from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Literal, Optional

DayStatus = Literal["completed", "frozen", "open"]


@dataclass
class DayRecord:
    """
    One calendar day for one user. `day` is the user's local date, never a
    wall-clock timestamp.
    """

    user_id: str
    day: date
    completed: bool = False
    frozen: bool = False
    marked_at: Optional[datetime] = None

    @property
    def protected(self) -> bool:
        return self.completed or self.frozen

    @property
    def status(self) -> DayStatus:
        # completed wins when both flags are set
        if self.completed:
            return "completed"
        if self.frozen:
            return "frozen"
        return "open"


@dataclass(frozen=True)
class StreakTotals:
    """Cached aggregate, always rebuildable from the day history."""

    current_streak: int = 0
    max_streak: int = 0
    days_completed: int = 0

    def as_dict(self) -> dict:
        return {
            "current_streak": self.current_streak,
            "max_streak": self.max_streak,
            "days_completed": self.days_completed,
        }


@dataclass
class UserProfile:
    user_id: str
    timezone: str = "UTC"
    reminder_time: str = "22:00"
    pledge_days: int = 0
    pledge_start: Optional[date] = None
    gems: int = 0
    daily_problem_limit: int = 2
    current_streak: int = 0
    max_streak: int = 0
    days_completed: int = 0
    # streak lengths whose one-off reward has been paid
    claimed_milestones: List[int] = field(default_factory=list)

    @property
    def totals(self) -> StreakTotals:
        return StreakTotals(
            current_streak=self.current_streak,
            max_streak=self.max_streak,
            days_completed=self.days_completed,
        )
