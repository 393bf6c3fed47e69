"""
Liveness and readiness endpoints.

Lightweight, no auth, no secrets in responses.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from streakdsa.api.deps import Services, get_services
from streakdsa.core.database import check_connection
from streakdsa.core.logging import get_request_id
from streakdsa.features.streaks.persistence import SqlStore

logger = logging.getLogger("streakdsa")

root_router = APIRouter(tags=["health"])


@root_router.get("/healthz")
def healthz():
    """Liveness check (no deps)."""
    return {"status": "ok"}


@root_router.get("/readyz")
async def readyz(services: Services = Depends(get_services)):
    """Readiness: the configured store can serve queries."""
    store = services.store
    if not isinstance(store, SqlStore):
        return {"status": "ok", "store": "memory"}

    if not await check_connection(store.engine):
        logger.error("readyz.failed", extra={"request_id": get_request_id()})
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})
    return {"status": "ok", "store": "sql"}
