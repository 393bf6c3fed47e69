from __future__ import annotations

import asyncio
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import AsyncIterator, Callable, Optional, Tuple

from streakdsa.core.config import settings
from streakdsa.core.errors import (
    AlreadyCompletedError,
    AlreadyFrozenError,
    InsufficientGemsError,
    MilestoneAlreadyClaimedError,
    MilestoneNotClaimableError,
    MilestoneNotReachedError,
    NotFoundError,
    ValidationError,
)
from streakdsa.core.logging import bound, log_event
from streakdsa.features.streaks import days as calendar
from streakdsa.features.streaks.engine import pledge_progress, recalculate_user_streak
from streakdsa.features.streaks.milestones import claim_reward
from streakdsa.features.streaks.store import DayStore, Wallet
from streakdsa.models.streak import StreakTotals, UserProfile


@dataclass(frozen=True)
class FreezeResult:
    totals: StreakTotals
    balance: int
    day: date


@dataclass(frozen=True)
class ClaimResult:
    streak: int
    reward: int
    balance: int
    claimed: Tuple[int, ...]

    def as_dict(self) -> dict:
        return {
            "milestone": self.streak,
            "reward": self.reward,
            "gems": self.balance,
            "claimed_milestones": list(self.claimed),
        }


class UserLocks:
    """One asyncio.Lock per user; serializes read-recalculate-write cycles.

    Locks are held weakly: once no coroutine holds or waits on a user's lock
    it is dropped, so the registry only grows with concurrent users.
    """

    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def for_user(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)


class StreakService:
    """Mutation triggers over the day store.

    Every trigger writes one day record and then recalculates the user's
    aggregates from full history, inside one store transaction and under the
    user's lock. Aggregates are never patched directly.
    """

    def __init__(
        self,
        store: DayStore,
        wallet: Wallet,
        *,
        locks: Optional[UserLocks] = None,
        freeze_cost: Optional[int] = None,
        clock: Callable[[], datetime] = calendar.utc_now,
    ):
        self.store = store
        self.wallet = wallet
        self.locks = locks or UserLocks()
        self.freeze_cost = settings.FREEZE_COST if freeze_cost is None else freeze_cost
        self.clock = clock

    async def _require_user(self, user_id: str) -> UserProfile:
        user = await self.store.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    @asynccontextmanager
    async def serialized(self, user_id: str) -> AsyncIterator[None]:
        """Hold the user's lock and one store transaction.

        Log records emitted inside the block are tagged with the user.
        """
        with bound(user_id=user_id):
            async with self.locks.for_user(user_id):
                async with self.store.transaction():
                    yield

    # Unlocked steps; callers must be inside serialized(user_id). ---------
    async def mark_completed(self, user_id: str, day: date) -> StreakTotals:
        await self._require_user(user_id)
        now = self.clock()
        # A real log supersedes a freeze for the same date.
        await self.store.upsert_day(user_id, day, completed=True, frozen=False, marked_at=now)
        return await recalculate_user_streak(self.store, user_id, now=now)

    async def mark_incomplete(self, user_id: str, day: date, remaining_count: int) -> Optional[StreakTotals]:
        if remaining_count > 0:
            return None
        await self._require_user(user_id)
        await self.store.upsert_day(user_id, day, completed=False, marked_at=None)
        return await recalculate_user_streak(self.store, user_id, now=self.clock())

    # Triggers -----------------------------------------------------------
    async def recalculate(self, user_id: str) -> StreakTotals:
        async with self.serialized(user_id):
            return await recalculate_user_streak(self.store, user_id, now=self.clock())

    async def on_activity_logged(self, user_id: str, day: date) -> StreakTotals:
        async with self.serialized(user_id):
            return await self.mark_completed(user_id, day)

    async def on_last_activity_removed(
        self, user_id: str, day: date, remaining_count: int
    ) -> Optional[StreakTotals]:
        if remaining_count > 0:
            return None
        async with self.serialized(user_id):
            return await self.mark_incomplete(user_id, day, remaining_count)

    async def on_freeze_purchased(self, user_id: str, day: Optional[date] = None) -> FreezeResult:
        async with self.serialized(user_id):
            user = await self._require_user(user_id)
            now = self.clock()
            local_today = calendar.today(user.timezone, now)
            target = day or local_today
            if target > local_today:
                raise ValidationError(f"Cannot freeze {target.isoformat()}: it is after today ({local_today.isoformat()})")

            balance = await self.wallet.get_balance(user_id)
            if balance < self.freeze_cost:
                raise InsufficientGemsError(balance, self.freeze_cost)

            existing = await self.store.get_day(user_id, target)
            if existing is not None and existing.completed:
                raise AlreadyCompletedError()
            if existing is not None and existing.frozen:
                raise AlreadyFrozenError()

            new_balance = await self.wallet.debit(user_id, self.freeze_cost)
            await self.store.upsert_day(user_id, target, frozen=True)
            totals = await recalculate_user_streak(self.store, user_id, now=now)

        log_event(
            "info",
            "streak.freeze_purchased",
            user_id=user_id,
            event_type="streak.freeze_purchased",
            extra={"day": target.isoformat(), "cost": self.freeze_cost, "gems": new_balance},
        )
        return FreezeResult(totals=totals, balance=new_balance, day=target)

    async def claim_milestone(self, user_id: str, streak: int) -> ClaimResult:
        """Pay the one-off reward for a streak length the user has reached.

        The credit and the claimed-milestone record commit together, so a
        milestone can never be paid twice.
        """
        reward = claim_reward(streak)
        if reward is None:
            raise MilestoneNotClaimableError(streak)

        async with self.serialized(user_id):
            user = await self._require_user(user_id)
            if streak in user.claimed_milestones:
                raise MilestoneAlreadyClaimedError(streak)
            if max(user.max_streak, user.current_streak) < streak:
                raise MilestoneNotReachedError(streak, user.max_streak)

            user.claimed_milestones = sorted([*user.claimed_milestones, streak])
            await self.store.save_user(user)
            balance = await self.wallet.credit(user_id, reward)

        log_event(
            "info",
            "streak.milestone_claimed",
            user_id=user_id,
            event_type="streak.milestone_claimed",
            extra={"milestone": streak, "gems_earned": reward, "gems": balance},
        )
        return ClaimResult(streak=streak, reward=reward, balance=balance, claimed=tuple(user.claimed_milestones))

    async def pledge_days_done(self, user: UserProfile) -> int:
        return pledge_progress(await self.store.list_days(user.user_id), user.pledge_start)

    async def get_state(self, user_id: str) -> dict:
        """Dashboard view of the cached aggregates plus today's deadline."""
        user = await self._require_user(user_id)
        now = self.clock()
        today = calendar.today(user.timezone, now)
        record = await self.store.get_day(user_id, today)
        deadline_at = calendar.deadline(user.timezone, user.reminder_time, now)

        state = {
            "user_id": user.user_id,
            "current_streak": user.current_streak,
            "max_streak": user.max_streak,
            "days_completed": user.days_completed,
            "gems": user.gems,
            "claimed_milestones": list(user.claimed_milestones),
            "today": {
                "date": today.isoformat(),
                "status": record.status if record else "open",
                "completed": bool(record and record.completed),
                "frozen": bool(record and record.frozen),
                "deadline_at": deadline_at.isoformat(),
                "deadline_passed": now >= deadline_at,
                "time_remaining": calendar.format_time_remaining(deadline_at, now),
            },
            "pledge": None,
        }
        if user.pledge_start is not None and user.pledge_days > 0:
            done = await self.pledge_days_done(user)
            state["pledge"] = {
                "total_days": user.pledge_days,
                "days_completed": done,
                "days_remaining": calendar.days_remaining(user.pledge_start, user.pledge_days, user.timezone, now),
                "start_date": user.pledge_start.isoformat(),
                "end_date": calendar.pledge_end_date(user.pledge_start, user.pledge_days).isoformat(),
                "complete": done >= user.pledge_days,
            }
        return state
