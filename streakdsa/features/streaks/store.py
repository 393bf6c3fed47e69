"""
Persistence ports for the streak core, plus the in-memory implementation.

The core never talks to a database directly: it receives a DayStore and a
Wallet. InMemoryStore backs tests and local development; SqlStore in
persistence.py backs real deployments.
"""

from __future__ import annotations

import asyncio
import copy
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import replace
from datetime import date
from typing import AsyncContextManager, AsyncIterator, Dict, List, Optional, Protocol, Tuple

from streakdsa.core.errors import InsufficientGemsError, NotFoundError
from streakdsa.models.problem import ProblemLog
from streakdsa.models.streak import DayRecord, StreakTotals, UserProfile

_UNSET = object()


def _copy_user(profile: UserProfile) -> UserProfile:
    return replace(profile, claimed_milestones=list(profile.claimed_milestones))


class DayStore(Protocol):
    async def save_user(self, profile: UserProfile) -> UserProfile: ...

    async def get_user(self, user_id: str) -> Optional[UserProfile]: ...

    async def get_day(self, user_id: str, day: date) -> Optional[DayRecord]: ...

    async def upsert_day(
        self,
        user_id: str,
        day: date,
        *,
        completed: Optional[bool] = None,
        frozen: Optional[bool] = None,
        marked_at: object = _UNSET,
    ) -> DayRecord: ...

    async def list_days(self, user_id: str, *, protected_only: bool = True) -> List[DayRecord]: ...

    async def write_aggregates(self, user_id: str, totals: StreakTotals) -> None: ...

    def transaction(self) -> AsyncContextManager[None]: ...


class Wallet(Protocol):
    async def get_balance(self, user_id: str) -> int: ...

    async def debit(self, user_id: str, amount: int) -> int: ...

    async def credit(self, user_id: str, amount: int) -> int: ...


class ProblemStore(Protocol):
    async def add_problem(self, problem: ProblemLog) -> ProblemLog: ...

    async def get_problem(self, problem_id: str) -> Optional[ProblemLog]: ...

    async def update_problem(self, problem: ProblemLog) -> ProblemLog: ...

    async def delete_problem(self, problem_id: str) -> None: ...

    async def list_problems(self, user_id: str, day: date) -> List[ProblemLog]: ...

    async def count_problems(self, user_id: str, day: date) -> int: ...


class InMemoryStore:
    """DayStore, Wallet and ProblemStore over plain dicts.

    transaction() snapshots all state and restores it if the block raises.
    Transactions are serialized store-wide; nesting joins the outer one.
    """

    def __init__(self) -> None:
        self._users: Dict[str, UserProfile] = {}
        self._days: Dict[Tuple[str, date], DayRecord] = {}
        self._problems: Dict[str, ProblemLog] = {}
        self._tx_lock = asyncio.Lock()
        self._tx_depth: ContextVar[int] = ContextVar(f"memstore_tx_{id(self)}", default=0)

    # Users ------------------------------------------------------------
    async def save_user(self, profile: UserProfile) -> UserProfile:
        self._users[profile.user_id] = _copy_user(profile)
        return _copy_user(profile)

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        user = self._users.get(user_id)
        return _copy_user(user) if user else None

    def _require_user(self, user_id: str) -> UserProfile:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    # Days -------------------------------------------------------------
    async def get_day(self, user_id: str, day: date) -> Optional[DayRecord]:
        record = self._days.get((user_id, day))
        return replace(record) if record else None

    async def upsert_day(
        self,
        user_id: str,
        day: date,
        *,
        completed: Optional[bool] = None,
        frozen: Optional[bool] = None,
        marked_at: object = _UNSET,
    ) -> DayRecord:
        record = self._days.get((user_id, day))
        if record is None:
            record = DayRecord(user_id=user_id, day=day)
            self._days[(user_id, day)] = record
        if completed is not None:
            record.completed = completed
        if frozen is not None:
            record.frozen = frozen
        if marked_at is not _UNSET:
            record.marked_at = marked_at  # type: ignore[assignment]
        return replace(record)

    async def list_days(self, user_id: str, *, protected_only: bool = True) -> List[DayRecord]:
        records = [
            replace(r)
            for (uid, _), r in self._days.items()
            if uid == user_id and (r.protected or not protected_only)
        ]
        records.sort(key=lambda r: r.day, reverse=True)
        return records

    async def write_aggregates(self, user_id: str, totals: StreakTotals) -> None:
        user = self._require_user(user_id)
        user.current_streak = totals.current_streak
        user.max_streak = totals.max_streak
        user.days_completed = totals.days_completed

    # Wallet -----------------------------------------------------------
    async def get_balance(self, user_id: str) -> int:
        return self._require_user(user_id).gems

    async def debit(self, user_id: str, amount: int) -> int:
        user = self._require_user(user_id)
        if user.gems < amount:
            raise InsufficientGemsError(user.gems, amount)
        user.gems -= amount
        return user.gems

    async def credit(self, user_id: str, amount: int) -> int:
        user = self._require_user(user_id)
        user.gems += amount
        return user.gems

    # Problems ---------------------------------------------------------
    async def add_problem(self, problem: ProblemLog) -> ProblemLog:
        self._problems[problem.id] = replace(problem, tags=list(problem.tags))
        return problem

    async def get_problem(self, problem_id: str) -> Optional[ProblemLog]:
        problem = self._problems.get(problem_id)
        return replace(problem, tags=list(problem.tags)) if problem else None

    async def update_problem(self, problem: ProblemLog) -> ProblemLog:
        if problem.id not in self._problems:
            raise NotFoundError("Problem not found")
        self._problems[problem.id] = replace(problem, tags=list(problem.tags))
        return problem

    async def delete_problem(self, problem_id: str) -> None:
        self._problems.pop(problem_id, None)

    async def list_problems(self, user_id: str, day: date) -> List[ProblemLog]:
        # insertion order is creation order
        return [replace(p, tags=list(p.tags)) for p in self._problems.values() if p.user_id == user_id and p.day == day]

    async def count_problems(self, user_id: str, day: date) -> int:
        return len(await self.list_problems(user_id, day))

    # Transactions -----------------------------------------------------
    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        depth = self._tx_depth.get()
        if depth:
            token = self._tx_depth.set(depth + 1)
            try:
                yield
            finally:
                self._tx_depth.reset(token)
            return

        async with self._tx_lock:
            snapshot = copy.deepcopy((self._users, self._days, self._problems))
            token = self._tx_depth.set(1)
            try:
                yield
            except BaseException:
                self._users, self._days, self._problems = snapshot
                raise
            finally:
                self._tx_depth.reset(token)
