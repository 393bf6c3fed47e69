"""
Database configuration and connection management.

This module provides:
- Async SQLAlchemy engine with connection pooling
- Table definitions for users, daily logs and problem logs
- Test database support (TEST_DATABASE_URL, in-memory SQLite)
"""
from typing import Optional
import os

from sqlalchemy import (
    MetaData, Table, Column, Integer, String, Date, DateTime, Boolean, JSON, Text,
    Index, ForeignKey, UniqueConstraint, text,
)
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import func

from streakdsa.core.config import settings


# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Global engine, built lazily from settings
_engine: Optional[AsyncEngine] = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return settings.DATABASE_URL


def build_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine. SQLite gets a single shared connection."""
    if url.startswith("sqlite"):
        return create_async_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=echo,
        )
    return create_async_engine(
        url,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        pool_pre_ping=True,
        echo=echo,  # Set to True for SQL query logging
    )


def init_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Initialize the global async engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    _engine = build_engine(url)
    return _engine


def get_engine() -> AsyncEngine:
    """Get the current async engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


async def dispose_engine() -> None:
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None


async def create_all_tables(engine: Optional[AsyncEngine] = None) -> None:
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    eng = engine or get_engine()
    async with eng.begin() as conn:
        await conn.run_sync(metadata.create_all)


async def drop_all_tables(engine: Optional[AsyncEngine] = None) -> None:
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    eng = engine or get_engine()
    async with eng.begin() as conn:
        await conn.run_sync(metadata.drop_all)


async def check_connection(engine: Optional[AsyncEngine] = None) -> bool:
    """Return True if a trivial query succeeds."""
    try:
        eng = engine or get_engine()
        async with eng.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


# ============================================================================
# TABLE DEFINITIONS
# ============================================================================

users = Table(
    'users',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('timezone', String(64), nullable=False, server_default='UTC'),
    Column('reminder_time', String(5), nullable=False, server_default='22:00'),
    Column('pledge_days', Integer, nullable=False, server_default=text('0')),
    Column('pledge_start', Date, nullable=True),
    Column('gems', Integer, nullable=False, server_default=text('0')),
    Column('daily_problem_limit', Integer, nullable=False, server_default=text('2')),
    # Cached aggregates, written only by streak recalculation
    Column('current_streak', Integer, nullable=False, server_default=text('0')),
    Column('max_streak', Integer, nullable=False, server_default=text('0')),
    Column('days_completed', Integer, nullable=False, server_default=text('0')),
    # Streak lengths whose one-off reward has been paid
    Column('claimed_milestones', JSON, nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)


daily_logs = Table(
    'daily_logs',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), ForeignKey('users.user_id', ondelete='CASCADE'), nullable=False),
    # User-local calendar date, never a wall-clock timestamp
    Column('day', Date, nullable=False),
    Column('completed', Boolean, nullable=False, default=False),
    Column('is_frozen', Boolean, nullable=False, default=False),
    Column('marked_at', DateTime(timezone=True), nullable=True),
    UniqueConstraint('user_id', 'day', name='uq_daily_logs_user_day'),
    Index('idx_daily_logs_user_day', 'user_id', 'day'),
)


problem_logs = Table(
    'problem_logs',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('user_id', String(100), ForeignKey('users.user_id', ondelete='CASCADE'), nullable=False),
    Column('day', Date, nullable=False),
    Column('name', String(255), nullable=False),
    Column('topic', String(32), nullable=False, server_default='OTHER'),
    Column('difficulty', String(16), nullable=False),
    Column('tags', JSON, nullable=False),
    Column('external_url', Text, nullable=True),
    Column('notes', Text, nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_problem_logs_user_day', 'user_id', 'day'),
)
