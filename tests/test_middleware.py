import time
from collections import deque

import pytest

pytest.importorskip("fastapi")

from starlette.requests import Request
from starlette.responses import PlainTextResponse

from services.api.middleware import WINDOW_SECONDS, RateLimitMiddleware


async def _noop_app(scope, receive, send) -> None:
    return None


async def _ok(request: Request) -> PlainTextResponse:
    return PlainTextResponse("ok")


def _request(client_ip: str, path: str = "/v1/upload") -> Request:
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": path,
            "query_string": b"",
            "headers": [],
            "client": (client_ip, 5000),
        }
    )


def test_evict_idle_forgets_quiet_clients() -> None:
    limiter = RateLimitMiddleware(_noop_app)
    now = 1000.0
    limiter._requests["quiet"] = deque([now - WINDOW_SECONDS - 1])
    limiter._requests["empty"] = deque()
    limiter._requests["busy"] = deque([now - 90, now - 5])

    assert limiter.evict_idle(now) == 2
    assert list(limiter._requests) == ["busy"]


@pytest.mark.asyncio()
async def test_dispatch_sweeps_idle_clients_once_a_window() -> None:
    limiter = RateLimitMiddleware(_noop_app)
    now = time.monotonic()
    limiter._requests["10.0.0.1"] = deque([now - 2 * WINDOW_SECONDS])
    limiter._last_sweep = now - WINDOW_SECONDS - 1

    response = await limiter.dispatch(_request("10.0.0.2"), _ok)

    assert response.status_code == 200
    assert "10.0.0.1" not in limiter._requests
    assert len(limiter._requests["10.0.0.2"]) == 1


@pytest.mark.asyncio()
async def test_dispatch_limits_per_client() -> None:
    limiter = RateLimitMiddleware(_noop_app, requests_per_minute=1)

    first = await limiter.dispatch(_request("10.0.0.3"), _ok)
    second = await limiter.dispatch(_request("10.0.0.3"), _ok)
    health = await limiter.dispatch(_request("10.0.0.3", "/healthz"), _ok)

    assert first.status_code == 200
    assert second.status_code == 429
    assert health.status_code == 200
