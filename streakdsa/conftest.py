# streakdsa/conftest.py
import os
from datetime import date, datetime, timezone

import pytest
import pytest_asyncio

from streakdsa.api import deps
from streakdsa.features.streaks.store import InMemoryStore
from streakdsa.models.streak import UserProfile

# Tuesday afternoon in UTC; early evening in Europe, morning in New York.
FIXED_NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for services under test."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def services(store, clock):
    """Streak and problem services over the in-memory store."""
    return deps.build_services(store, clock=clock, freeze_cost=50)


@pytest.fixture
def make_user(store):
    async def _make(user_id: str = "u1", **fields) -> UserProfile:
        fields.setdefault("timezone", "UTC")
        fields.setdefault("pledge_days", 30)
        fields.setdefault("pledge_start", date(2026, 3, 1))
        return await store.save_user(UserProfile(user_id=user_id, **fields))

    return _make


@pytest.fixture(autouse=True)
def reset_services():
    """Each test starts without an installed service bundle."""
    deps.install_services(None)
    yield
    deps.install_services(None)


@pytest.fixture
def db_url():
    """
    Async SQLAlchemy URL for store tests.

    Uses TEST_DATABASE_URL when set, otherwise an in-memory SQLite database.
    """
    return os.getenv("TEST_DATABASE_URL") or "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def sql_engine(db_url):
    from streakdsa.core.database import build_engine, create_all_tables, drop_all_tables

    engine = build_engine(db_url)
    await create_all_tables(engine)
    try:
        yield engine
    finally:
        await drop_all_tables(engine)
        await engine.dispose()
