"""Error taxonomy and FastAPI handlers."""

import logging
from typing import Optional
from uuid import uuid4

from starlette.exceptions import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from streakdsa.core.logging import get_request_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class NotFoundError(AppError, LookupError):
    code = "not_found"
    status_code = 404


class DomainError(AppError):
    """A business rule refused the operation. The code tells the UI why."""
    code = "domain_error"
    status_code = 409


class InsufficientGemsError(DomainError):
    code = "insufficient_gems"

    def __init__(self, balance: int, required: int):
        super().__init__(f"Insufficient gems: have {balance}, need {required}")
        self.balance = balance
        self.required = required


class AlreadyCompletedError(DomainError):
    code = "already_completed"

    def __init__(self, message: str = "You have already completed a problem today!"):
        super().__init__(message)


class AlreadyFrozenError(DomainError):
    code = "already_frozen"

    def __init__(self, message: str = "Streak is already frozen for today!"):
        super().__init__(message)


class MilestoneNotClaimableError(DomainError):
    code = "milestone_not_claimable"
    status_code = 400

    def __init__(self, streak: int):
        super().__init__(f"{streak} is not a claimable milestone")
        self.streak = streak


class MilestoneNotReachedError(DomainError):
    code = "milestone_not_reached"

    def __init__(self, streak: int, best: int):
        super().__init__(f"Milestone {streak} not reached yet (best streak {best})")
        self.streak = streak


class MilestoneAlreadyClaimedError(DomainError):
    code = "milestone_already_claimed"

    def __init__(self, streak: int):
        super().__init__(f"Milestone {streak} already claimed")
        self.streak = streak


class ProblemLimitError(DomainError):
    code = "problem_limit_exceeded"
    status_code = 400

    def __init__(self, limit: int):
        super().__init__(f"Maximum {limit} problems per day allowed")
        self.limit = limit


def _extract_request_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or fallback
        or str(uuid4())
    )


def _error_payload(code: str, message: str, request_id: str) -> dict:
    return {
        "error": {"code": code, "message": message, "request_id": request_id},
        "detail": message,
    }


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _extract_request_id(request)
    payload = _error_payload(exc.code, exc.message, rid)
    logger = logging.getLogger("streakdsa")
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        log_level,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _extract_request_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    message = exc.detail if exc.detail else "HTTP error"
    payload = _error_payload(code, message, rid)
    logger = logging.getLogger("streakdsa")
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def request_validation_handler(request: Request, exc: RequestValidationError):
    rid = _extract_request_id(request)
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid')}" for err in errors
    ) or "Invalid request"
    logging.getLogger("streakdsa").warning(
        "request.invalid", extra={"request_id": rid, "error_code": "validation_error", "status": 400}
    )
    response = JSONResponse(status_code=400, content=_error_payload("validation_error", message, rid))
    response.headers["x-request-id"] = rid
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_request_id(request)
    logger = logging.getLogger("streakdsa")
    logger.error("unhandled.exception", exc_info=True, extra={"request_id": rid, "error_code": "internal_error"})
    payload = _error_payload("internal_error", "Unexpected error", rid)
    response = JSONResponse(status_code=500, content=payload)
    response.headers["x-request-id"] = rid
    return response
