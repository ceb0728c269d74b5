"""
Tests for the quota tiers and circuit breaker.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import utc
from quantsignal.core.config import Settings
from quantsignal.schemas.gateway import CircuitState
from quantsignal.services.base import CircuitOpenError, RateLimitedError
from quantsignal.services.data_ingestion import RateLimiter

WALL_NOW = utc(2024, 1, 1, 12)


def make_limiter(clock, **kwargs):
    params = dict(
        per_minute=3,
        per_hour=100,
        per_day=100,
        per_month=100,
        failure_threshold=3,
        cooldown_seconds=60.0,
    )
    params.update(kwargs)
    return RateLimiter(clock=clock, wall_clock=lambda: WALL_NOW, **params)


def trip(limiter, times):
    for _ in range(times):
        limiter.acquire()
        limiter.record_failure()


class TestQuota:
    def test_call_past_limit_is_rejected(self, clock):
        limiter = make_limiter(clock)
        for _ in range(3):
            limiter.acquire()

        with pytest.raises(RateLimitedError) as exc:
            limiter.acquire()
        assert exc.value.details["window"] == "minute"
        assert exc.value.details["retry_after"] == pytest.approx(60.0)

    def test_rejection_does_not_consume_quota(self, clock):
        limiter = make_limiter(clock)
        for _ in range(3):
            limiter.acquire()
        for _ in range(5):
            with pytest.raises(RateLimitedError):
                limiter.acquire()

        status = limiter.status()
        assert status.requests_this_window == 3
        assert status.total_requests == 3
        assert status.total_rejections == 5

    def test_window_slides(self, clock):
        limiter = make_limiter(clock)
        for _ in range(3):
            limiter.acquire()
        clock.advance(59.0)
        with pytest.raises(RateLimitedError):
            limiter.acquire()
        clock.advance(1.0)
        limiter.acquire()

    def test_burst_tier(self, clock):
        limiter = make_limiter(clock, per_minute=30, burst_limit=3, burst_seconds=10.0)
        for _ in range(3):
            limiter.acquire()
        with pytest.raises(RateLimitedError) as exc:
            limiter.acquire()
        assert exc.value.details["window"] == "burst"
        assert exc.value.details["retry_after"] == pytest.approx(10.0)

        clock.advance(10.0)
        limiter.acquire()
        assert limiter.status().requests_this_window == 4

    def test_burst_tier_off_by_default(self, clock):
        limiter = make_limiter(clock, per_minute=30)
        for _ in range(10):
            limiter.acquire()
        assert "burst" not in [w.name for w in limiter.windows]

    def test_longer_tier_applies(self, clock):
        limiter = make_limiter(clock, per_minute=10, per_hour=2)
        limiter.acquire()
        limiter.acquire()
        clock.advance(120.0)
        with pytest.raises(RateLimitedError) as exc:
            limiter.acquire()
        assert exc.value.details["window"] == "hour"

    def test_concurrent_acquire_never_overshoots(self, clock):
        limiter = make_limiter(clock, per_minute=50, per_hour=1000, per_day=1000, per_month=1000)

        def attempt(_):
            try:
                limiter.acquire()
                return True
            except RateLimitedError:
                return False

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, range(200)))

        assert results.count(True) == 50
        assert limiter.total_rejections == 150


class TestCircuitBreaker:
    def test_opens_at_threshold(self, clock):
        limiter = make_limiter(clock)
        trip(limiter, 2)
        assert limiter.state == CircuitState.CLOSED

        trip(limiter, 1)
        assert limiter.state == CircuitState.OPEN
        assert limiter.opened_at == WALL_NOW

        with pytest.raises(CircuitOpenError) as exc:
            limiter.acquire()
        assert exc.value.details["retry_after"] == pytest.approx(60.0)

    def test_success_resets_failure_count(self, clock):
        limiter = make_limiter(clock, per_minute=100)
        trip(limiter, 2)
        limiter.acquire()
        limiter.record_success()
        trip(limiter, 2)
        assert limiter.state == CircuitState.CLOSED
        assert limiter.consecutive_failures == 2

    def test_recovers_through_half_open(self, clock):
        limiter = make_limiter(clock)
        trip(limiter, 3)

        clock.advance(60.0)
        limiter.acquire()
        assert limiter.state == CircuitState.HALF_OPEN

        limiter.record_success()
        assert limiter.state == CircuitState.CLOSED
        assert limiter.consecutive_failures == 0
        assert limiter.opened_at is None

    def test_half_open_admits_a_single_probe(self, clock):
        limiter = make_limiter(clock)
        trip(limiter, 3)
        clock.advance(61.0)

        limiter.acquire()
        with pytest.raises(CircuitOpenError):
            limiter.acquire()

        limiter.release()
        limiter.acquire()

    def test_failed_probe_reopens(self, clock):
        limiter = make_limiter(clock, per_minute=100)
        trip(limiter, 3)
        clock.advance(60.0)

        limiter.acquire()
        limiter.record_failure()
        assert limiter.state == CircuitState.OPEN

        # Cooldown restarts from the failed probe
        clock.advance(30.0)
        with pytest.raises(CircuitOpenError):
            limiter.acquire()
        clock.advance(30.0)
        limiter.acquire()
        assert limiter.state == CircuitState.HALF_OPEN

    def test_rejects_bad_threshold(self, clock):
        with pytest.raises(ValueError):
            make_limiter(clock, failure_threshold=0)


class TestStatus:
    def test_snapshot(self, clock):
        limiter = make_limiter(clock)
        limiter.acquire()
        clock.advance(10.0)
        limiter.acquire()

        status = limiter.status()
        assert status.requests_this_window == 2
        assert status.window_start == utc(2024, 1, 1, 11, 59, 50)
        assert status.circuit_state == CircuitState.CLOSED
        assert [w.name for w in status.windows] == ["minute", "hour", "day", "month"]
        assert status.windows[0].utilization == pytest.approx(66.67)

    def test_idle_window(self, clock):
        status = make_limiter(clock).status()
        assert status.requests_this_window == 0
        assert status.window_start is None
        assert status.opened_at is None

    def test_from_settings(self):
        settings = Settings(
            requests_per_minute=5,
            requests_per_hour=50,
            circuit_failure_threshold=7,
            circuit_cooldown_seconds=15.0,
        )
        limiter = RateLimiter.from_settings(settings)
        assert limiter.windows[0].limit == 5
        assert limiter.windows[1].limit == 50
        assert limiter.failure_threshold == 7
        assert limiter.cooldown_seconds == 15.0

    def test_burst_from_settings(self):
        limiter = RateLimiter.from_settings(Settings(burst_limit=3, burst_window_seconds=10.0))
        burst = limiter.windows[-1]
        assert (burst.name, burst.limit, burst.seconds) == ("burst", 3, 10.0)
        assert len(RateLimiter.from_settings(Settings()).windows) == 4
