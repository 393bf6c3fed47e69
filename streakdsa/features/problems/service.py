"""
Activity log service: daily problem logging on top of the streak triggers.

Logging the first problem of a local day completes that day; deleting the
last one reopens it. Both run the store write, the streak trigger and the
gem movement inside one serialized unit per user.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Mapping, Optional

from streakdsa.core.config import settings
from streakdsa.core.errors import NotFoundError, ProblemLimitError, ValidationError
from streakdsa.core.logging import log_event
from streakdsa.features.streaks import days as calendar
from streakdsa.features.streaks.milestones import MilestoneTag, evaluate_milestone, milestone_message
from streakdsa.features.streaks.service import StreakService
from streakdsa.features.streaks.store import ProblemStore
from streakdsa.models.problem import Difficulty, ProblemLog, Topic
from streakdsa.models.streak import StreakTotals

EDITABLE_FIELDS = frozenset({"name", "difficulty", "topic", "tags", "external_url", "notes"})


def difficulty_award(difficulty: Difficulty) -> int:
    return {
        Difficulty.EASY: settings.GEMS_EASY,
        Difficulty.MEDIUM: settings.GEMS_MEDIUM,
        Difficulty.HARD: settings.GEMS_HARD,
    }[difficulty]


@dataclass
class ProblemInput:
    name: str
    difficulty: Difficulty
    topic: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    external_url: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class LogResult:
    problem: ProblemLog
    totals: StreakTotals
    gems_earned: int
    balance: int
    milestone: Optional[MilestoneTag] = None
    melted: bool = False

    def as_dict(self) -> dict:
        return {
            "problem": self.problem.as_dict(),
            "streak": self.totals.as_dict(),
            "gems_earned": self.gems_earned,
            "gems": self.balance,
            "milestone": self.milestone.value if self.milestone else None,
            "message": milestone_message(self.milestone),
            "melted": self.melted,
        }


@dataclass(frozen=True)
class DeleteResult:
    remaining: int
    gems_deducted: int
    balance: int
    totals: Optional[StreakTotals] = None

    def as_dict(self) -> dict:
        return {
            "remaining": self.remaining,
            "gems_deducted": self.gems_deducted,
            "gems": self.balance,
            "streak": self.totals.as_dict() if self.totals else None,
        }


@dataclass(frozen=True)
class EditResult:
    problem: ProblemLog
    gems_delta: int
    balance: int

    def as_dict(self) -> dict:
        return {"problem": self.problem.as_dict(), "gems_delta": self.gems_delta, "gems": self.balance}


class ProblemService:
    def __init__(
        self,
        store: ProblemStore,
        streaks: StreakService,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.streaks = streaks
        self.clock = clock or streaks.clock

    async def log_problem(self, user_id: str, request: ProblemInput) -> LogResult:
        """Store one solved problem for the user's current local day.

        The first problem of the day may also pay a milestone bonus, and if the
        day had been frozen the freeze cost is refunded.
        """
        name = (request.name or "").strip()
        if not name:
            raise ValidationError("Problem name is required")

        async with self.streaks.serialized(user_id):
            user = await self.streaks.store.get_user(user_id)
            if user is None:
                raise NotFoundError(f"User {user_id} not found")

            now = self.clock()
            today = calendar.today(user.timezone, now)
            count = await self.store.count_problems(user_id, today)
            if count >= user.daily_problem_limit:
                raise ProblemLimitError(user.daily_problem_limit)

            existing = await self.streaks.store.get_day(user_id, today)
            first_today = count == 0
            melted = bool(first_today and existing is not None and existing.frozen and not existing.completed)

            problem = ProblemLog(
                id=str(uuid.uuid4()),
                user_id=user_id,
                day=today,
                name=name,
                difficulty=request.difficulty,
                topic=Topic.parse(request.topic),
                tags=[t.strip() for t in request.tags if t and t.strip()],
                external_url=request.external_url,
                notes=request.notes,
                created_at=now,
            )
            pledge_before = await self.streaks.pledge_days_done(user)
            await self.store.add_problem(problem)
            totals = await self.streaks.mark_completed(user_id, today)

            earned = difficulty_award(problem.difficulty)
            milestone: Optional[MilestoneTag] = None
            if first_today:
                # Pledge bonus pays once, on the check-in that reaches the target.
                pledge_after = await self.streaks.pledge_days_done(user)
                pledge_reached = 0 < user.pledge_days <= pledge_after and pledge_before < user.pledge_days
                result = evaluate_milestone(totals.current_streak, pledge_reached)
                earned += result.reward_amount
                milestone = result.milestone_tag
            if melted:
                earned += self.streaks.freeze_cost

            balance = await self.streaks.wallet.credit(user_id, earned)

        log_event(
            "info",
            "problem.logged",
            user_id=user_id,
            event_type="problem.logged",
            extra={
                "day": today.isoformat(),
                "difficulty": problem.difficulty.value,
                "gems_earned": earned,
                "milestone": milestone.value if milestone else None,
                "melted": melted,
            },
        )
        return LogResult(
            problem=problem,
            totals=totals,
            gems_earned=earned,
            balance=balance,
            milestone=milestone,
            melted=melted,
        )

    async def delete_problem(self, user_id: str, problem_id: str) -> DeleteResult:
        async with self.streaks.serialized(user_id):
            problem = await self.store.get_problem(problem_id)
            if problem is None or problem.user_id != user_id:
                raise NotFoundError("Problem not found")

            await self.store.delete_problem(problem_id)
            remaining = await self.store.count_problems(user_id, problem.day)
            totals = await self.streaks.mark_incomplete(user_id, problem.day, remaining)

            wallet = self.streaks.wallet
            balance = await wallet.get_balance(user_id)
            deducted = min(balance, difficulty_award(problem.difficulty))
            if deducted > 0:
                balance = await wallet.debit(user_id, deducted)

        log_event(
            "info",
            "problem.deleted",
            user_id=user_id,
            event_type="problem.deleted",
            extra={"day": problem.day.isoformat(), "remaining": remaining, "gems_deducted": deducted},
        )
        return DeleteResult(remaining=remaining, gems_deducted=deducted, balance=balance, totals=totals)

    async def update_problem(self, user_id: str, problem_id: str, changes: Mapping[str, object]) -> EditResult:
        """Edit a logged problem in place.

        Only keys present in `changes` are touched; external_url and notes may
        be cleared with None. The day never moves, so the streak is untouched,
        but a difficulty change settles the gem difference so that deleting
        the problem later takes back what it paid.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot edit: {', '.join(sorted(unknown))}")

        async with self.streaks.serialized(user_id):
            problem = await self.store.get_problem(problem_id)
            if problem is None or problem.user_id != user_id:
                raise NotFoundError("Problem not found")
            old_award = difficulty_award(problem.difficulty)

            if "name" in changes:
                name = (changes["name"] or "").strip()
                if not name:
                    raise ValidationError("Problem name is required")
                problem.name = name
            value = changes.get("difficulty")
            if value is not None:
                try:
                    problem.difficulty = Difficulty(value.upper() if isinstance(value, str) else value)
                except ValueError:
                    raise ValidationError(f"Unknown difficulty {value!r}") from None
            if "topic" in changes:
                problem.topic = Topic.parse(changes["topic"])
            if changes.get("tags") is not None:
                problem.tags = [t.strip() for t in changes["tags"] if t and t.strip()]
            if "external_url" in changes:
                problem.external_url = changes["external_url"]
            if "notes" in changes:
                problem.notes = changes["notes"]

            await self.store.update_problem(problem)

            wallet = self.streaks.wallet
            delta = difficulty_award(problem.difficulty) - old_award
            if delta > 0:
                balance = await wallet.credit(user_id, delta)
            else:
                balance = await wallet.get_balance(user_id)
                delta = -min(balance, -delta)
                if delta < 0:
                    balance = await wallet.debit(user_id, -delta)

        log_event(
            "info",
            "problem.updated",
            user_id=user_id,
            event_type="problem.updated",
            extra={"day": problem.day.isoformat(), "fields": sorted(changes), "gems": balance},
        )
        return EditResult(problem=problem, gems_delta=delta, balance=balance)

    async def list_today(self, user_id: str) -> dict:
        user = await self.streaks.store.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        today = calendar.today(user.timezone, self.clock())
        problems = await self.store.list_problems(user_id, today)
        return {
            "date": today.isoformat(),
            "limit": user.daily_problem_limit,
            "count": len(problems),
            "problems": [p.as_dict() for p in problems],
        }

