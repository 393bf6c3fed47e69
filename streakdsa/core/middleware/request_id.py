import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from streakdsa.core.logging import bound, log_event


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Correlate each request with an id and echo it back in the response."""

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        rid = request.headers.get(self.header_name) or uuid4().hex
        request.state.request_id = rid

        started = time.perf_counter()
        with bound(request_id=rid):
            response = await call_next(request)
            log_event(
                "info",
                "http.request",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                },
            )

        response.headers[self.header_name] = rid
        return response
