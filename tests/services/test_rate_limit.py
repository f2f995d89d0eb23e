"""Tests for the in-memory sliding-window rate limiter."""

from uptodate.services.rate_limit import InMemoryRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestInMemoryRateLimiter:
    def test_allows_up_to_limit(self):
        limiter = InMemoryRateLimiter(max_requests=3, window_seconds=60, clock=FakeClock())
        assert [limiter.is_allowed("a") for _ in range(4)] == [True, True, True, False]

    def test_keys_are_independent(self):
        limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        assert limiter.is_allowed("a")
        assert limiter.is_allowed("b")
        assert not limiter.is_allowed("a")

    def test_window_slides(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60, clock=clock)
        assert limiter.is_allowed("a")
        clock.now += 61
        assert limiter.is_allowed("a")

    def test_retry_after(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60, clock=clock)
        assert limiter.retry_after("a") == 0
        limiter.is_allowed("a")
        clock.now += 20
        assert 1 <= limiter.retry_after("a") <= 41

    def test_clear_resets_state(self):
        limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        limiter.is_allowed("a")
        limiter.clear()
        assert limiter.is_allowed("a")

    def test_idle_clients_are_forgotten(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(max_requests=5, window_seconds=60, clock=clock)
        for index in range(10):
            limiter.is_allowed(f"client-{index}")
        assert len(limiter) == 10

        clock.now += 61
        limiter.is_allowed("newcomer")

        assert len(limiter) == 1

    def test_active_clients_survive_a_sweep(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60, clock=clock)
        limiter.is_allowed("old")
        clock.now += 50
        limiter.is_allowed("recent")
        clock.now += 20

        limiter.is_allowed("trigger")

        assert len(limiter) == 2
        assert not limiter.is_allowed("recent")
