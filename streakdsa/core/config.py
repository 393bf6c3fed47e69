import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Database (async SQLAlchemy URL, e.g. postgresql+asyncpg://... or sqlite+aiosqlite:///...)
    # Unset means the in-memory store is used.
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Calendar defaults
    DEFAULT_TIMEZONE: str = "UTC"
    DEFAULT_REMINDER_TIME: str = "22:00"
    DEFAULT_DAILY_PROBLEM_LIMIT: int = 2

    # Gems economy
    FREEZE_COST: int = 50
    WEEK_BONUS: int = 50
    MONTH_BONUS: int = 200
    PLEDGE_BONUS: int = 500
    GEMS_EASY: int = 10
    GEMS_MEDIUM: int = 20
    GEMS_HARD: int = 30

    # Pledge bounds (days)
    PLEDGE_MIN_DAYS: int = 7
    PLEDGE_MAX_DAYS: int = 365

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate economy and calendar configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("streakdsa")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    for key in ("FREEZE_COST", "WEEK_BONUS", "MONTH_BONUS", "PLEDGE_BONUS", "GEMS_EASY", "GEMS_MEDIUM", "GEMS_HARD"):
        value = getattr(cfg, key, 0)
        if value is None or value < 0:
            problems.append(f"{key} must be >= 0")

    if str(getattr(cfg, "ENV", "development")).lower() == "production" and not getattr(cfg, "DATABASE_URL", None):
        problems.append("DATABASE_URL is required in production")

    if getattr(cfg, "DEFAULT_DAILY_PROBLEM_LIMIT", 1) < 1:
        problems.append("DEFAULT_DAILY_PROBLEM_LIMIT must be >= 1")

    if getattr(cfg, "PLEDGE_MIN_DAYS", 1) > getattr(cfg, "PLEDGE_MAX_DAYS", 365):
        problems.append("PLEDGE_MIN_DAYS must not exceed PLEDGE_MAX_DAYS")

    from streakdsa.core.validation import is_valid_timezone, REMINDER_TIME_RE

    if not is_valid_timezone(getattr(cfg, "DEFAULT_TIMEZONE", "UTC")):
        problems.append("DEFAULT_TIMEZONE must be an IANA timezone identifier")
    if not REMINDER_TIME_RE.match(getattr(cfg, "DEFAULT_REMINDER_TIME", "") or ""):
        problems.append("DEFAULT_REMINDER_TIME must be HH:MM")

    if problems:
        message = f"Invalid configuration: {'; '.join(problems)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
