"""
SQLAlchemy-backed implementation of the DayStore, Wallet and ProblemStore
ports.

Methods called inside transaction() share one connection and commit
together; outside a transaction each call commits on its own.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from typing import AsyncIterator, List, Optional

from sqlalchemy import delete, func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from streakdsa.core.database import daily_logs, problem_logs, users
from streakdsa.core.errors import InsufficientGemsError, NotFoundError
from streakdsa.features.streaks.store import _UNSET
from streakdsa.models.problem import Difficulty, ProblemLog, Topic
from streakdsa.models.streak import DayRecord, StreakTotals, UserProfile


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _row_to_profile(row) -> UserProfile:
    return UserProfile(
        user_id=row.user_id,
        timezone=row.timezone,
        reminder_time=row.reminder_time,
        pledge_days=row.pledge_days,
        pledge_start=row.pledge_start,
        gems=row.gems,
        daily_problem_limit=row.daily_problem_limit,
        current_streak=row.current_streak,
        max_streak=row.max_streak,
        days_completed=row.days_completed,
        claimed_milestones=[int(m) for m in (row.claimed_milestones or [])],
    )


def _row_to_day(row) -> DayRecord:
    return DayRecord(
        user_id=row.user_id,
        day=row.day,
        completed=bool(row.completed),
        frozen=bool(row.is_frozen),
        marked_at=_as_utc(row.marked_at),
    )


def _row_to_problem(row) -> ProblemLog:
    return ProblemLog(
        id=row.id,
        user_id=row.user_id,
        day=row.day,
        name=row.name,
        difficulty=Difficulty(row.difficulty),
        topic=Topic.parse(row.topic),
        tags=list(row.tags or []),
        external_url=row.external_url,
        notes=row.notes,
        created_at=_as_utc(row.created_at),
    )


class SqlStore:
    """DayStore, Wallet and ProblemStore over an async SQLAlchemy engine.

    SQLite is meant for development and tests only. Its engine shares one
    connection (StaticPool), so top-level units of work are queued behind a
    store-wide lock instead of interleaving on that connection. Other
    dialects run concurrent transactions on pooled connections.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._conn: ContextVar[Optional[AsyncConnection]] = ContextVar(f"sqlstore_conn_{id(self)}", default=None)
        self._single_conn_lock: Optional[asyncio.Lock] = asyncio.Lock() if engine.dialect.name == "sqlite" else None

    @property
    def serializes_transactions(self) -> bool:
        return self._single_conn_lock is not None

    @asynccontextmanager
    async def _begin(self) -> AsyncIterator[AsyncConnection]:
        if self._single_conn_lock is None:
            async with self.engine.begin() as conn:
                yield conn
            return
        async with self._single_conn_lock:
            async with self.engine.begin() as conn:
                yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._conn.get() is not None:
            yield
            return
        async with self._begin() as conn:
            token = self._conn.set(conn)
            try:
                yield
            finally:
                self._conn.reset(token)

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[AsyncConnection]:
        current = self._conn.get()
        if current is not None:
            yield current
            return
        async with self._begin() as conn:
            yield conn

    # Users ------------------------------------------------------------
    async def save_user(self, profile: UserProfile) -> UserProfile:
        values = {
            "timezone": profile.timezone,
            "reminder_time": profile.reminder_time,
            "pledge_days": profile.pledge_days,
            "pledge_start": profile.pledge_start,
            "gems": profile.gems,
            "daily_problem_limit": profile.daily_problem_limit,
            "current_streak": profile.current_streak,
            "max_streak": profile.max_streak,
            "days_completed": profile.days_completed,
            "claimed_milestones": list(profile.claimed_milestones),
        }
        async with self._connection() as conn:
            existing = await conn.execute(select(users.c.user_id).where(users.c.user_id == profile.user_id))
            if existing.first() is None:
                await conn.execute(insert(users).values(user_id=profile.user_id, **values))
            else:
                await conn.execute(update(users).where(users.c.user_id == profile.user_id).values(**values))
        return profile

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        async with self._connection() as conn:
            row = (await conn.execute(select(users).where(users.c.user_id == user_id))).first()
        return _row_to_profile(row) if row else None

    # Days -------------------------------------------------------------
    async def get_day(self, user_id: str, day: date) -> Optional[DayRecord]:
        async with self._connection() as conn:
            row = (
                await conn.execute(
                    select(daily_logs).where(daily_logs.c.user_id == user_id, daily_logs.c.day == day)
                )
            ).first()
        return _row_to_day(row) if row else None

    async def upsert_day(
        self,
        user_id: str,
        day: date,
        *,
        completed: Optional[bool] = None,
        frozen: Optional[bool] = None,
        marked_at: object = _UNSET,
    ) -> DayRecord:
        patch = {}
        if completed is not None:
            patch["completed"] = completed
        if frozen is not None:
            patch["is_frozen"] = frozen
        if marked_at is not _UNSET:
            patch["marked_at"] = marked_at

        where = (daily_logs.c.user_id == user_id, daily_logs.c.day == day)
        async with self._connection() as conn:
            row = (await conn.execute(select(daily_logs.c.id).where(*where).with_for_update())).first()
            if row is None:
                values = {"completed": False, "is_frozen": False, "marked_at": None}
                values.update(patch)
                await conn.execute(insert(daily_logs).values(user_id=user_id, day=day, **values))
            elif patch:
                await conn.execute(update(daily_logs).where(daily_logs.c.id == row.id).values(**patch))
            stored = (await conn.execute(select(daily_logs).where(*where))).one()
        return _row_to_day(stored)

    async def list_days(self, user_id: str, *, protected_only: bool = True) -> List[DayRecord]:
        query = select(daily_logs).where(daily_logs.c.user_id == user_id)
        if protected_only:
            query = query.where(or_(daily_logs.c.completed, daily_logs.c.is_frozen))
        query = query.order_by(daily_logs.c.day.desc())
        async with self._connection() as conn:
            rows = (await conn.execute(query)).fetchall()
        return [_row_to_day(r) for r in rows]

    async def write_aggregates(self, user_id: str, totals: StreakTotals) -> None:
        async with self._connection() as conn:
            result = await conn.execute(
                update(users)
                .where(users.c.user_id == user_id)
                .values(
                    current_streak=totals.current_streak,
                    max_streak=totals.max_streak,
                    days_completed=totals.days_completed,
                )
            )
            if result.rowcount == 0:
                raise NotFoundError(f"User {user_id} not found")

    # Wallet -----------------------------------------------------------
    async def get_balance(self, user_id: str) -> int:
        async with self._connection() as conn:
            row = (await conn.execute(select(users.c.gems).where(users.c.user_id == user_id))).first()
        if row is None:
            raise NotFoundError(f"User {user_id} not found")
        return int(row.gems)

    async def debit(self, user_id: str, amount: int) -> int:
        async with self._connection() as conn:
            result = await conn.execute(
                update(users)
                .where(users.c.user_id == user_id, users.c.gems >= amount)
                .values(gems=users.c.gems - amount)
            )
            updated = result.rowcount
            row = (await conn.execute(select(users.c.gems).where(users.c.user_id == user_id))).first()
        if row is None:
            raise NotFoundError(f"User {user_id} not found")
        if updated == 0:
            raise InsufficientGemsError(int(row.gems), amount)
        return int(row.gems)

    async def credit(self, user_id: str, amount: int) -> int:
        async with self._connection() as conn:
            result = await conn.execute(
                update(users).where(users.c.user_id == user_id).values(gems=users.c.gems + amount)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"User {user_id} not found")
            row = (await conn.execute(select(users.c.gems).where(users.c.user_id == user_id))).one()
        return int(row.gems)

    # Problems ---------------------------------------------------------
    async def add_problem(self, problem: ProblemLog) -> ProblemLog:
        values = {
            "id": problem.id,
            "user_id": problem.user_id,
            "day": problem.day,
            "name": problem.name,
            "topic": problem.topic.value,
            "difficulty": problem.difficulty.value,
            "tags": list(problem.tags),
            "external_url": problem.external_url,
            "notes": problem.notes,
        }
        if problem.created_at is not None:
            values["created_at"] = problem.created_at
        async with self._connection() as conn:
            await conn.execute(insert(problem_logs).values(**values))
        return problem

    async def get_problem(self, problem_id: str) -> Optional[ProblemLog]:
        async with self._connection() as conn:
            row = (await conn.execute(select(problem_logs).where(problem_logs.c.id == problem_id))).first()
        return _row_to_problem(row) if row else None

    async def update_problem(self, problem: ProblemLog) -> ProblemLog:
        values = {
            "name": problem.name,
            "topic": problem.topic.value,
            "difficulty": problem.difficulty.value,
            "tags": list(problem.tags),
            "external_url": problem.external_url,
            "notes": problem.notes,
        }
        async with self._connection() as conn:
            result = await conn.execute(update(problem_logs).where(problem_logs.c.id == problem.id).values(**values))
            if result.rowcount == 0:
                raise NotFoundError("Problem not found")
        return problem

    async def delete_problem(self, problem_id: str) -> None:
        async with self._connection() as conn:
            await conn.execute(delete(problem_logs).where(problem_logs.c.id == problem_id))

    async def list_problems(self, user_id: str, day: date) -> List[ProblemLog]:
        query = (
            select(problem_logs)
            .where(problem_logs.c.user_id == user_id, problem_logs.c.day == day)
            .order_by(problem_logs.c.created_at, problem_logs.c.id)
        )
        async with self._connection() as conn:
            rows = (await conn.execute(query)).fetchall()
        return [_row_to_problem(r) for r in rows]

    async def count_problems(self, user_id: str, day: date) -> int:
        query = select(func.count()).select_from(problem_logs).where(
            problem_logs.c.user_id == user_id, problem_logs.c.day == day
        )
        async with self._connection() as conn:
            return int((await conn.execute(query)).scalar_one())
