"""Per-client request rate limiting"""

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from cachetools import TTLCache  # type: ignore[import-untyped]
from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# Liveness probes must never be throttled
EXEMPT_PATHS = frozenset({"/health", "/api/queue/health"})


@dataclass
class _Window:
    started_at: float
    count: int = 0


class FixedWindowRateLimiter:
    """Allow ``max_requests`` per ``window_seconds`` for each client key.

    Counters live in a TTLCache whose TTL equals the window, so idle
    clients are forgotten without a sweeper task.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        *,
        max_clients: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: TTLCache = TTLCache(
            maxsize=max_clients, ttl=window_seconds, timer=clock
        )

    def hit(self, key: str) -> tuple[bool, int]:
        """Count one request. Returns (allowed, seconds until the window resets)."""
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now - window.started_at >= self.window_seconds:
            window = _Window(started_at=now)
            self._windows[key] = window

        window.count += 1
        retry_after = max(0, math.ceil(window.started_at + self.window_seconds - now))
        return window.count <= self.max_requests, retry_after


def client_key(request: Request) -> str:
    # behind Vercel / Lambda the client address arrives in X-Forwarded-For
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limit_middleware(limiter: FixedWindowRateLimiter):
    """Build an ``@app.middleware("http")`` callable around ``limiter``."""

    async def middleware(request: Request, call_next):
        if request.url.path in EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        key = client_key(request)
        allowed, retry_after = limiter.hit(key)
        if not allowed:
            logger.warning(f"Rate limit exceeded for {key} on {request.url.path}")
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": "Too many requests, please try again later.",
                },
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)

    return middleware
