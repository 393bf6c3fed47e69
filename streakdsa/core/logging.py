"""
Logging for the streak service.

Every record on the "streakdsa" logger is stamped with two correlation ids
taken from context: the HTTP request and the user whose streak is being
changed. Domain events (log_event) carry a fixed set of streak fields that
both formatters render; any other detail is grouped under "context".
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional

LOGGER_NAME = "streakdsa"

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_ctx_var: ContextVar[Optional[str]] = ContextVar("streak_user_id", default=None)

# Promoted to top-level record attributes, in JSON output order.
STREAK_FIELDS = (
    "user_id",
    "event_type",
    "error_code",
    "day",
    "current_streak",
    "max_streak",
    "days_completed",
    "gems_earned",
    "gems",
    "milestone",
)

MAX_TEXT = 500


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    rid = request_id_ctx_var.get()
    return rid if rid is not None else default


@contextmanager
def bound(*, request_id: Optional[str] = None, user_id: Optional[str] = None) -> Iterator[None]:
    """Bind correlation ids for the enclosed block. None leaves a binding as is."""
    tokens = []
    if request_id is not None:
        tokens.append((request_id_ctx_var, request_id_ctx_var.set(request_id)))
    if user_id is not None:
        tokens.append((user_id_ctx_var, user_id_ctx_var.set(user_id)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


class StreakContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_ctx_var.get()
        if getattr(record, "user_id", None) is None:
            record.user_id = user_id_ctx_var.get()
        return True


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": _timestamp(record),
            "level": record.levelname,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        for key in STREAK_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        context = getattr(record, "context", None)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    """Single line: ids, message, then a short streak summary when present.

    2026-03-10T15:00:00Z INFO rid=ab12 user=u1 problem.logged streak=3/5 +20 gems (7_DAY_STREAK)
    """

    def format(self, record: logging.LogRecord) -> str:
        parts = [_timestamp(record), record.levelname]
        rid = getattr(record, "request_id", None)
        if rid:
            parts.append(f"rid={rid}")
        uid = getattr(record, "user_id", None)
        if uid:
            parts.append(f"user={uid}")
        parts.append(record.getMessage())

        current = getattr(record, "current_streak", None)
        if current is not None:
            parts.append(f"streak={current}/{getattr(record, 'max_streak', '?')}")
        earned = getattr(record, "gems_earned", None)
        if earned:
            parts.append(f"+{earned} gems")
        milestone = getattr(record, "milestone", None)
        if milestone:
            parts.append(f"({milestone})")
        code = getattr(record, "error_code", None)
        if code:
            parts.append(f"code={code}")

        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(env: str = "development", level: int = logging.INFO) -> logging.Logger:
    """JSON lines in production, one readable line per record elsewhere."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else PrettyFormatter())
    logger.handlers = [handler]

    logger.filters = [f for f in logger.filters if not isinstance(f, StreakContextFilter)]
    logger.addFilter(StreakContextFilter())
    return logger


def _clip(value):
    # numbers and flags stay typed for the JSON formatter
    if value is None or isinstance(value, (bool, int, float)):
        return value
    text = value if isinstance(value, str) else str(value)
    if len(text) <= MAX_TEXT:
        return text
    return text[:MAX_TEXT] + "...<truncated>"


def log_event(
    level: str,
    msg: str,
    *,
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
):
    """Emit a domain event.

    Keys of `extra` that are streak fields become record attributes; the rest
    land in the record's "context" dict. Long strings are clipped.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        configure_logging(os.getenv("ENV", "development"))

    attrs: Dict[str, object] = {
        "request_id": request_id or get_request_id(),
        "user_id": user_id or user_id_ctx_var.get(),
        "event_type": event_type or msg,
    }
    if error_code:
        attrs["error_code"] = error_code

    context: Dict[str, object] = {}
    for key, value in (extra or {}).items():
        if key in STREAK_FIELDS:
            attrs[key] = _clip(value)
        else:
            context[key] = _clip(value)
    if context:
        attrs["context"] = context

    getattr(logger, level, logger.info)(msg, extra=attrs)
