"""Tests for configuration validation."""

import logging
from types import SimpleNamespace

import pytest

from streakdsa.core.config import validate_config


def make_settings(**overrides):
    defaults = dict(
        ENV="development",
        CONFIG_STRICT=False,
        DATABASE_URL=None,
        DEFAULT_TIMEZONE="UTC",
        DEFAULT_REMINDER_TIME="22:00",
        DEFAULT_DAILY_PROBLEM_LIMIT=2,
        FREEZE_COST=50,
        WEEK_BONUS=50,
        MONTH_BONUS=200,
        PLEDGE_BONUS=500,
        GEMS_EASY=10,
        GEMS_MEDIUM=20,
        GEMS_HARD=30,
        PLEDGE_MIN_DAYS=7,
        PLEDGE_MAX_DAYS=365,
    )
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


def test_defaults_pass_strict():
    assert validate_config(strict=True, settings_obj=make_settings())


@pytest.mark.parametrize(
    "overrides",
    [
        {"FREEZE_COST": -1},
        {"DEFAULT_DAILY_PROBLEM_LIMIT": 0},
        {"PLEDGE_MIN_DAYS": 400},
        {"DEFAULT_TIMEZONE": "Atlantis/Central"},
        {"DEFAULT_REMINDER_TIME": "25:00"},
        {"ENV": "production"},
    ],
)
def test_strict_mode_raises(overrides):
    with pytest.raises(RuntimeError):
        validate_config(strict=True, settings_obj=make_settings(**overrides))


def test_production_with_database_passes():
    settings = make_settings(ENV="production", DATABASE_URL="postgresql+asyncpg://u:p@localhost/streakdsa")
    assert validate_config(strict=True, settings_obj=settings)


def test_non_strict_mode_warns(caplog):
    with caplog.at_level(logging.WARNING, logger="streakdsa"):
        validate_config(strict=False, settings_obj=make_settings(GEMS_HARD=-5))
    assert any("GEMS_HARD" in r.getMessage() for r in caplog.records)
