"""Starlette middleware: request ID injection and login rate limiting."""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import PlainTextResponse

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

logger = structlog.get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Adds a unique X-Request-ID header to every response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response


class LoginRateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory limiter for code submissions.

    Limits POSTs to ``login_path`` per client IP to ``max_requests`` within
    ``window_seconds``. A ``max_requests`` of 0 disables the limiter.
    """

    def __init__(
        self,
        app: object,
        login_path: str = "/login",
        max_requests: int = 30,
        window_seconds: int = 60,
    ) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._login_path = login_path
        self._max_requests = max_requests
        self._window = window_seconds
        self._hits: dict[str, list[float]] = {}

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if (
            self._max_requests <= 0
            or request.method != "POST"
            or request.url.path != self._login_path
        ):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.monotonic()

        # Clean old entries
        hits = [t for t in self._hits.get(client_ip, ()) if now - t < self._window]

        if len(hits) >= self._max_requests:
            self._hits[client_ip] = hits
            logger.warning("login_rate_limit_exceeded", ip=client_ip, path=request.url.path)
            return PlainTextResponse(
                "Too Many Requests",
                status_code=429,
                headers={"Retry-After": str(self._window)},
            )

        hits.append(now)
        self._hits[client_ip] = hits
        self._prune(now)
        return await call_next(request)

    def _prune(self, now: float) -> None:
        """Drop clients whose every hit has left the window."""
        stale = [ip for ip, hits in self._hits.items() if not hits or now - hits[-1] >= self._window]
        for ip in stale:
            del self._hits[ip]
