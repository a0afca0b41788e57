from exam_service.api.rate_limit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestFixedWindowRateLimiter:
    def test_allows_up_to_limit(self) -> None:
        limiter = FixedWindowRateLimiter(limit=3, window_seconds=60, clock=FakeClock())
        decisions = [limiter.hit("1.2.3.4") for _ in range(4)]
        assert [d.allowed for d in decisions] == [True, True, True, False]
        assert [d.remaining for d in decisions] == [2, 1, 0, 0]

    def test_rejection_carries_retry_after(self) -> None:
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)
        limiter.hit("k")
        clock.now += 20.5
        decision = limiter.hit("k")
        assert not decision.allowed
        assert decision.retry_after == 40
        headers = decision.headers()
        assert headers["Retry-After"] == "40"
        assert headers["X-RateLimit-Limit"] == "1"
        assert headers["X-RateLimit-Remaining"] == "0"
        assert headers["X-RateLimit-Reset"] == "1060"

    def test_window_resets(self) -> None:
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)
        assert limiter.hit("k").allowed
        clock.now += 61
        assert limiter.hit("k").allowed

    def test_keys_are_independent(self) -> None:
        limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=FakeClock())
        assert limiter.hit("a").allowed
        assert limiter.hit("b").allowed
        assert not limiter.hit("a").allowed

    def test_allowed_decision_has_no_retry_after(self) -> None:
        limiter = FixedWindowRateLimiter(limit=5, clock=FakeClock())
        assert "Retry-After" not in limiter.hit("k").headers()
