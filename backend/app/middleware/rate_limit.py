"""
Health Metrics Tracker Backend — Rate Limiting
================================================

What:  Per-client sliding window rate limiter and the middleware that applies it.
Why:   Bounds how fast one client can hammer the submission and aggregation
       endpoints.
How:   SlidingWindowRateLimiter keeps the request timestamps of each client
       key inside the window. RateLimitMiddleware derives the key, asks the
       limiter, and answers 429 with the shared error envelope when refused.

Algorithm: Sliding Window Log
    1. Each key keeps a deque of request timestamps
    2. On each hit, drop timestamps older than the window
    3. If the remaining count reached the limit, refuse
    4. Otherwise record the hit and allow it

    Fixed windows let a client burst 2× the limit across a boundary; the
    sliding log always counts exactly the last `window` seconds.

The limiter is a plain object handed to the middleware (not module state),
so each app instance, and each test, gets its own counters and clock.
In-memory state is per process; multi-worker deployments limit per worker.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.exceptions import RateLimitExceededError
from app.responses import error_response

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one limiter hit."""
    allowed: bool
    limit: int
    remaining: int
    retry_after: int = 0


class SlidingWindowRateLimiter:
    """
    Counts hits per key over the trailing `window_seconds`.

    Args:
        max_requests:   Hits allowed per key within the window
        window_seconds: Window length
        clock:          Monotonic time source in seconds (injectable for tests)
        prune_every:    Drop idle keys after this many hits
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        prune_every: int = 1000,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._prune_every = prune_every
        self._hits: Dict[str, Deque[float]] = {}
        self._hit_count = 0

    def hit(self, key: str) -> RateLimitDecision:
        now = self._clock()
        window_start = now - self.window_seconds

        self._hit_count += 1
        if self._hit_count % self._prune_every == 0:
            self.prune(now)

        timestamps = self._hits.setdefault(key, deque())
        while timestamps and timestamps[0] <= window_start:
            timestamps.popleft()

        if len(timestamps) >= self.max_requests:
            # Seconds until the oldest hit leaves the window, rounded up
            retry_after = int(timestamps[0] + self.window_seconds - now) + 1
            return RateLimitDecision(
                allowed=False,
                limit=self.max_requests,
                remaining=0,
                retry_after=max(retry_after, 1),
            )

        timestamps.append(now)
        return RateLimitDecision(
            allowed=True,
            limit=self.max_requests,
            remaining=self.max_requests - len(timestamps),
        )

    def prune(self, now: Optional[float] = None) -> int:
        """Forget keys with no hits inside the window. Returns how many were dropped."""
        if now is None:
            now = self._clock()
        window_start = now - self.window_seconds
        idle = [
            key for key, timestamps in self._hits.items()
            if not timestamps or timestamps[-1] <= window_start
        ]
        for key in idle:
            del self._hits[key]
        if idle:
            logger.debug("Pruned %d idle rate limit keys", len(idle))
        return len(idle)

    def tracked_keys(self) -> int:
        return len(self._hits)


def client_key(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the peer address."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies a SlidingWindowRateLimiter to every non-exempt request.

    Response headers:
        X-RateLimit-Limit / X-RateLimit-Remaining on every limited path
        Retry-After on 429
    """

    # Health probes and API docs are always reachable
    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(self, app, limiter: SlidingWindowRateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        key = client_key(request)
        decision = self.limiter.hit(key)
        headers = {
            "X-RateLimit-Limit": str(decision.limit),
            "X-RateLimit-Remaining": str(decision.remaining),
        }

        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded for %s: %d requests in %ss window",
                key,
                decision.limit,
                self.limiter.window_seconds,
            )
            exc = RateLimitExceededError(retry_after=decision.retry_after)
            headers["Retry-After"] = str(exc.retry_after)
            return error_response(
                request,
                status_code=429,
                error="Too Many Requests",
                message=exc.message,
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
