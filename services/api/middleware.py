"""Security and rate limiting middleware."""

from __future__ import annotations

import time
from collections import defaultdict, deque
from typing import Any, Callable

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

WINDOW_SECONDS = 60.0


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client sliding window limit on upload and publish requests.

    Health checks are never limited.
    """

    def __init__(
        self,
        app: Any,
        *,
        requests_per_minute: int = 60,
        exempt_paths: tuple[str, ...] = ("/healthz",),
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.exempt_paths = exempt_paths
        self._requests: dict[str, deque[float]] = defaultdict(deque)
        self._last_sweep = time.monotonic()

    def evict_idle(self, now: float) -> int:
        """Forget clients with no request inside the window; returns how many."""
        idle = [key for key, window in self._requests.items() if not window or now - window[-1] >= WINDOW_SECONDS]
        for key in idle:
            del self._requests[key]
        self._last_sweep = now
        return len(idle)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.monotonic()
        if now - self._last_sweep >= WINDOW_SECONDS:
            self.evict_idle(now)
        window = self._requests[client_ip]
        while window and now - window[0] >= WINDOW_SECONDS:
            window.popleft()

        if len(window) >= self.requests_per_minute:
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"error": "RateLimitExceeded", "message": "Rate limit exceeded. Please try again later."},
            )

        window.append(now)
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Cache-Control"] = "no-store"
        return response


__all__ = ["RateLimitMiddleware", "SecurityHeadersMiddleware"]
