import os
import sys
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest


TESTS_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(TESTS_DIR, ".."))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from quantsignal.schemas.market import Candle, Timeframe  # noqa: E402
from quantsignal.services.base import UpstreamUnavailableError  # noqa: E402
from quantsignal.services.data_ingestion.interface import MarketDataGateway  # noqa: E402

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def build_candles(closes, timeframe=Timeframe.H1, spread=0.5, start=START):
    """Candles whose open is the previous close and whose wicks extend by `spread`."""
    candles = []
    prev = closes[0]
    for i, close in enumerate(closes):
        open_ = prev
        high = max(open_, close) + spread
        low = max(min(open_, close) - spread, min(open_, close) * 0.5)
        candles.append(
            Candle(
                timestamp=timeframe.shift(start, i),
                open=open_,
                high=high,
                low=low,
                close=close,
                volume=1000.0,
            )
        )
        prev = close
    return candles


def random_walk(n, seed=42, start_price=100.0, step=0.01):
    rng = np.random.default_rng(seed)
    returns = rng.normal(0.0, step, n)
    return list(start_price * np.exp(np.cumsum(returns)))


@pytest.fixture
def make_candles():
    return build_candles


@pytest.fixture
def walk_candles():
    """120 hourly candles of a seeded random walk."""
    return build_candles(random_walk(120))


@pytest.fixture
def rising_candles():
    """Steady uptrend with small pullbacks."""
    closes = [100 + i * 0.8 + (0.6 if i % 3 == 0 else 0.0) for i in range(120)]
    return build_candles(closes)


@pytest.fixture
def falling_candles():
    closes = [200 - i * 0.8 - (0.6 if i % 3 == 0 else 0.0) for i in range(120)]
    return build_candles(closes)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class ScriptedGateway(MarketDataGateway):
    """
    Gateway test double. `failures` exceptions are raised first, then the
    candle series is served.
    """

    def __init__(self, candles=None, failures=None):
        self.candles = list(candles or [])
        self.failures = list(failures or [])
        self.history_calls = 0
        self.latest_calls = 0

    @property
    def name(self) -> str:
        return "ScriptedGateway"

    def _maybe_fail(self):
        if self.failures:
            raise self.failures.pop(0)

    async def fetch_history(self, symbol, timeframe, n):
        self.history_calls += 1
        self._maybe_fail()
        return self.candles[-n:]

    async def fetch_latest_candle(self, symbol, timeframe):
        self.latest_calls += 1
        self._maybe_fail()
        if not self.candles:
            raise UpstreamUnavailableError(self.name, "no candles")
        return self.candles[-1]


@pytest.fixture
def scripted_gateway():
    return ScriptedGateway


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def hours(n: float) -> timedelta:
    return timedelta(hours=n)


class MatrixGateway(ScriptedGateway):
    """Serves a different series (or raises) per symbol."""

    def __init__(self, series):
        super().__init__()
        self.series = series

    async def fetch_history(self, symbol, timeframe, n):
        self.history_calls += 1
        value = self.series[symbol]
        if isinstance(value, Exception):
            raise value
        return value[-n:]
