"""
Health Metrics Tracker Backend — Rate Limiting Tests
======================================================

What:  Tests for SlidingWindowRateLimiter and RateLimitMiddleware.
How:   The limiter gets a fake clock, so window expiry is tested without
       sleeping. Middleware tests build an app with a tiny limiter.

What we test:
    ✅ Hits up to the limit are allowed, the next one is refused
    ✅ Retry-After counts down to when the oldest hit leaves the window
    ✅ Keys are counted independently; idle keys are pruned
    ✅ Middleware answers 429 with the error envelope and headers
    ✅ Health check is never rate limited
"""

import pytest

from app.middleware.rate_limit import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestSlidingWindowRateLimiter:

    def setup_method(self):
        self.clock = FakeClock()
        self.limiter = SlidingWindowRateLimiter(max_requests=3, window_seconds=60, clock=self.clock)

    def test_allows_up_to_limit(self):
        decisions = [self.limiter.hit("10.0.0.1") for _ in range(3)]
        assert all(d.allowed for d in decisions)
        assert [d.remaining for d in decisions] == [2, 1, 0]

    def test_refuses_over_limit(self):
        for _ in range(3):
            self.limiter.hit("10.0.0.1")
        decision = self.limiter.hit("10.0.0.1")
        assert decision.allowed is False
        assert decision.remaining == 0
        assert decision.retry_after == 61

    def test_retry_after_shrinks_as_window_slides(self):
        for _ in range(3):
            self.limiter.hit("10.0.0.1")
        self.clock.now += 45
        assert self.limiter.hit("10.0.0.1").retry_after == 16

    def test_window_expiry_frees_capacity(self):
        for _ in range(3):
            self.limiter.hit("10.0.0.1")
        self.clock.now += 60
        assert self.limiter.hit("10.0.0.1").allowed is True

    def test_refused_hits_do_not_extend_the_window(self):
        for _ in range(3):
            self.limiter.hit("10.0.0.1")
        self.clock.now += 30
        self.limiter.hit("10.0.0.1")
        self.clock.now += 30
        assert self.limiter.hit("10.0.0.1").allowed is True

    def test_keys_are_independent(self):
        for _ in range(3):
            self.limiter.hit("10.0.0.1")
        assert self.limiter.hit("10.0.0.2").allowed is True

    def test_prune_drops_idle_keys(self):
        self.limiter.hit("10.0.0.1")
        self.limiter.hit("10.0.0.2")
        self.clock.now += 61
        self.limiter.hit("10.0.0.3")

        assert self.limiter.prune() == 2
        assert self.limiter.tracked_keys() == 1

    @pytest.mark.parametrize("max_requests,window", [(0, 60), (10, 0)])
    def test_rejects_invalid_configuration(self, max_requests, window):
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(max_requests=max_requests, window_seconds=window)


class TestRateLimitMiddleware:

    @pytest.mark.asyncio
    async def test_429_after_limit(self, make_client):
        limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=60, clock=FakeClock())
        async with make_client(limiter=limiter) as client:
            first = await client.get("/api/indicators")
            second = await client.get("/api/indicators")
            third = await client.get("/api/indicators")

        assert first.status_code == 200
        assert first.headers["X-RateLimit-Limit"] == "2"
        assert first.headers["X-RateLimit-Remaining"] == "1"
        assert second.status_code == 200

        assert third.status_code == 429
        assert third.headers["Retry-After"] == "61"
        assert third.headers["X-RateLimit-Remaining"] == "0"
        error = third.json()
        assert error["status"] == 429
        assert error["error"] == "Too Many Requests"
        assert error["message"] == "Rate limit exceeded. Please try again later."
        assert error["path"] == "/api/indicators"
        assert error["requestId"] == third.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_forwarded_clients_counted_separately(self, make_client):
        limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        async with make_client(limiter=limiter) as client:
            a = await client.get("/api/indicators", headers={"X-Forwarded-For": "203.0.113.1"})
            b = await client.get(
                "/api/indicators", headers={"X-Forwarded-For": "203.0.113.2, 10.0.0.1"}
            )
            a_again = await client.get("/api/indicators", headers={"X-Forwarded-For": "203.0.113.1"})

        assert a.status_code == 200
        assert b.status_code == 200
        assert a_again.status_code == 429

    @pytest.mark.asyncio
    async def test_health_is_exempt(self, make_client):
        limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        async with make_client(limiter=limiter) as client:
            responses = [await client.get("/health") for _ in range(3)]

        assert all(r.status_code == 200 for r in responses)
        assert "X-RateLimit-Limit" not in responses[0].headers
