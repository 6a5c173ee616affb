"""Per-client request rate limiting.

Sliding window per client IP: at most ``max_requests`` requests in any
``window_seconds``. Rejected requests get HTTP 429 with a Retry-After header.
Liveness endpoints are never limited.
"""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from .error_codes import RateLimitError

logger = logging.getLogger(__name__)

EXEMPT_PATHS = frozenset({"/health", "/ping", "/ready", "/live"})


class SlidingWindowRateLimiter:
    """Request timestamps per key, pruned to the current window."""

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 15 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep = clock()

    @property
    def tracked_keys(self) -> int:
        return len(self._hits)

    def _prune(self, key: str, now: float) -> deque[float] | None:
        hits = self._hits.get(key)
        if hits is None:
            return None
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        if not hits:
            del self._hits[key]
            return None
        return hits

    def _prune_idle(self, now: float) -> None:
        """Drop keys whose requests all left the window"""
        for key in list(self._hits):
            self._prune(key, now)
        self._last_sweep = now

    def check(self, key: str) -> None:
        """Record a request for ``key``.

        Raises:
            RateLimitError: If the key is over its limit; the request is not recorded.
        """
        now = self._clock()
        if now - self._last_sweep >= self.window_seconds:
            self._prune_idle(now)
        hits = self._prune(key, now)
        if hits is not None and len(hits) >= self.max_requests:
            retry_after = max(1, math.ceil(self.window_seconds - (now - hits[0])))
            raise RateLimitError(retry_after)
        self._hits.setdefault(key, deque()).append(now)

    def remaining(self, key: str) -> int:
        hits = self._prune(key, self._clock())
        return max(0, self.max_requests - len(hits or ()))

    def reset(self) -> None:
        self._hits.clear()


def get_client_ip(request: Request, trust_proxy: bool = False) -> str:
    """Extract client IP; X-Forwarded-For is used only behind a trusted proxy."""
    if trust_proxy:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def install_rate_limiting(app: FastAPI, limiter: SlidingWindowRateLimiter, trust_proxy: bool = False) -> None:
    """Register the rate limiting middleware on ``app``."""

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next) -> Response:
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        client_ip = get_client_ip(request, trust_proxy)
        try:
            limiter.check(client_ip)
        except RateLimitError as e:
            logger.warning(f"Rate limit exceeded for {client_ip} on {request.url.path}")
            return JSONResponse(
                status_code=e.http_status,
                content=e.to_dict(),
                headers={"Retry-After": str(e.retry_after)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(limiter.remaining(client_ip))
        return response
