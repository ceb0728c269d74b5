"""
Tests for the guarded gateway: retry, timeout and circuit bookkeeping.
"""

import asyncio

import aiohttp
import pytest

from conftest import ScriptedGateway, build_candles
from quantsignal.schemas.gateway import CircuitState
from quantsignal.schemas.market import Timeframe
from quantsignal.services.base import (
    CircuitOpenError,
    InvalidParametersError,
    RateLimitedError,
    UpstreamUnavailableError,
)
from quantsignal.services.data_ingestion import GuardedGateway, RateLimiter
from quantsignal.utils.retry import ExponentialBackoff

NO_WAIT = ExponentialBackoff(base=0.0, jitter=False)


def make_guarded(inner, clock, max_retries=2, timeout_seconds=1.0, **limits):
    params = dict(per_minute=100, per_hour=1000, per_day=1000, per_month=1000, failure_threshold=5)
    params.update(limits)
    limiter = RateLimiter(clock=clock, **params)
    guarded = GuardedGateway(
        inner, limiter, timeout_seconds=timeout_seconds, max_retries=max_retries, backoff=NO_WAIT
    )
    return guarded, limiter


class SlowGateway(ScriptedGateway):
    async def fetch_latest_candle(self, symbol, timeframe):
        self.latest_calls += 1
        await asyncio.sleep(5)


class BrokenPayloadGateway(ScriptedGateway):
    async def fetch_history(self, symbol, timeframe, n):
        self.history_calls += 1
        raise ValueError("kline row has 3 fields")


class BuggyGateway(ScriptedGateway):
    async def fetch_history(self, symbol, timeframe, n):
        self.history_calls += 1
        raise TypeError("'NoneType' object is not subscriptable")


class TestRetry:
    @pytest.mark.asyncio
    async def test_transient_failure_then_success(self, clock):
        inner = ScriptedGateway(
            build_candles([100.0, 101.0, 102.0]),
            failures=[UpstreamUnavailableError("test", "502"), aiohttp.ClientError("reset")],
        )
        guarded, limiter = make_guarded(inner, clock)

        candles = await guarded.fetch_history("BTC/USDT", Timeframe.H1, 2)

        assert [c.close for c in candles] == [101.0, 102.0]
        assert inner.history_calls == 3
        assert limiter.total_requests == 3
        assert limiter.consecutive_failures == 0

    @pytest.mark.asyncio
    async def test_exhausted_retries(self, clock):
        inner = ScriptedGateway(
            build_candles([100.0]),
            failures=[UpstreamUnavailableError("test", "502") for _ in range(3)],
        )
        guarded, limiter = make_guarded(inner, clock, max_retries=2)

        with pytest.raises(UpstreamUnavailableError) as exc:
            await guarded.fetch_latest_candle("BTC/USDT", Timeframe.H1)

        assert "after 3 attempts" in exc.value.message
        assert inner.latest_calls == 3
        assert limiter.consecutive_failures == 3

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, clock):
        inner = SlowGateway(build_candles([100.0]))
        guarded, limiter = make_guarded(inner, clock, max_retries=0, timeout_seconds=0.01)

        with pytest.raises(UpstreamUnavailableError):
            await guarded.fetch_latest_candle("BTC/USDT", Timeframe.H1)
        assert limiter.consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_bad_payload_is_not_retried(self, clock):
        inner = BrokenPayloadGateway()
        guarded, limiter = make_guarded(inner, clock)

        with pytest.raises(UpstreamUnavailableError):
            await guarded.fetch_history("BTC/USDT", Timeframe.H1, 10)
        assert inner.history_calls == 1
        assert limiter.consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_programming_error_propagates_untouched(self, clock):
        inner = BuggyGateway()
        guarded, limiter = make_guarded(inner, clock)

        with pytest.raises(TypeError):
            await guarded.fetch_history("BTC/USDT", Timeframe.H1, 10)
        assert inner.history_calls == 1
        assert limiter.consecutive_failures == 0
        assert limiter.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_failures_trip_the_circuit(self, clock):
        inner = ScriptedGateway(
            build_candles([100.0]),
            failures=[UpstreamUnavailableError("test", "down") for _ in range(10)],
        )
        guarded, limiter = make_guarded(inner, clock, max_retries=2, failure_threshold=3)

        with pytest.raises(UpstreamUnavailableError):
            await guarded.fetch_latest_candle("BTC/USDT", Timeframe.H1)
        assert limiter.state == CircuitState.OPEN


class TestLocalRejection:
    @pytest.mark.asyncio
    async def test_quota_exhausted_skips_network(self, clock):
        inner = ScriptedGateway(build_candles([100.0]))
        guarded, limiter = make_guarded(inner, clock, per_minute=1)
        limiter.acquire()

        with pytest.raises(RateLimitedError):
            await guarded.fetch_latest_candle("BTC/USDT", Timeframe.H1)
        assert inner.latest_calls == 0

    @pytest.mark.asyncio
    async def test_open_circuit_skips_network(self, clock):
        inner = ScriptedGateway(build_candles([100.0]))
        guarded, limiter = make_guarded(inner, clock, failure_threshold=1)
        limiter.acquire()
        limiter.record_failure()

        with pytest.raises(CircuitOpenError):
            await guarded.fetch_latest_candle("BTC/USDT", Timeframe.H1)
        assert inner.latest_calls == 0

    def test_rejects_negative_retries(self, clock):
        with pytest.raises(InvalidParametersError):
            make_guarded(ScriptedGateway(), clock, max_retries=-1)


class TestBackoff:
    def test_exponential_without_jitter(self):
        backoff = ExponentialBackoff(base=1.0, multiplier=2.0, max_delay=5.0, jitter=False)
        assert [backoff.calculate(i) for i in range(4)] == [1.0, 2.0, 4.0, 5.0]

    def test_jitter_is_bounded(self):
        backoff = ExponentialBackoff(base=2.0, jitter=True)
        for _ in range(50):
            assert 1.5 <= backoff.calculate(0) <= 2.5
