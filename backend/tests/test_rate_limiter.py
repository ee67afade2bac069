"""
Tests for the sliding window rate limiter.

A fake clock drives the window so nothing here sleeps.
"""

import pytest
from hypothesis import given, settings, strategies as st

from coach_relay.services.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestRateLimiter:

    def test_allows_up_to_limit_then_rejects(self):
        clock = FakeClock()
        limiter = RateLimiter(limit=10, window_seconds=60, clock=clock)

        results = [limiter.check("10.0.0.1") for _ in range(10)]
        assert all(r.allowed for r in results)
        assert results[-1].remaining == 0

        rejected = limiter.check("10.0.0.1")
        assert not rejected.allowed
        assert rejected.retry_after == 60

    def test_window_slides_open_after_oldest_expires(self):
        clock = FakeClock()
        limiter = RateLimiter(limit=2, window_seconds=60, clock=clock)

        limiter.check("a")
        clock.advance(30)
        limiter.check("a")
        assert not limiter.check("a").allowed

        clock.advance(30)
        assert limiter.check("a").allowed
        assert not limiter.check("a").allowed

    def test_rejected_requests_do_not_extend_the_window(self):
        clock = FakeClock()
        limiter = RateLimiter(limit=1, window_seconds=10, clock=clock)

        limiter.check("a")
        for _ in range(5):
            clock.advance(1)
            assert not limiter.check("a").allowed

        clock.advance(5)
        assert limiter.check("a").allowed

    def test_consumers_are_isolated(self):
        limiter = RateLimiter(limit=1, window_seconds=60, clock=FakeClock())

        assert limiter.check("a").allowed
        assert not limiter.check("a").allowed
        assert limiter.check("b").allowed

    def test_prune_drops_idle_consumers(self):
        clock = FakeClock()
        limiter = RateLimiter(limit=5, window_seconds=60, clock=clock)
        limiter.check("idle")
        clock.advance(30)
        limiter.check("busy")
        clock.advance(31)

        assert limiter.prune() == 1
        assert limiter.check("busy").remaining == 3

    def test_reset_clears_a_consumer(self):
        limiter = RateLimiter(limit=1, window_seconds=60, clock=FakeClock())
        limiter.check("a")
        limiter.reset("a")
        assert limiter.check("a").allowed

    def test_rejects_nonsense_configuration(self):
        with pytest.raises(ValueError):
            RateLimiter(limit=0, window_seconds=60)
        with pytest.raises(ValueError):
            RateLimiter(limit=1, window_seconds=0)

    @given(
        limit=st.integers(min_value=1, max_value=50),
        window=st.integers(min_value=1, max_value=3600),
    )
    @settings(max_examples=100)
    def test_n_plus_one_rejected_until_window_elapses(self, limit, window):
        clock = FakeClock()
        limiter = RateLimiter(limit=limit, window_seconds=window, clock=clock)

        for _ in range(limit):
            assert limiter.check("consumer").allowed

        blocked = limiter.check("consumer")
        assert not blocked.allowed
        assert blocked.retry_after >= 1

        clock.advance(window)
        assert limiter.check("consumer").allowed
