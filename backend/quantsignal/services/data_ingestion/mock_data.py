"""
Synthetic Market Data Gateway

Seeded random-walk candles for offline development and tests. Selected
explicitly with MARKET_DATA_PROVIDER=synthetic; it is never used as a
stand-in for a failing real provider.
"""

import logging
import random
import zlib
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from quantsignal.core.config import settings
from quantsignal.schemas.market import Candle, Timeframe
from quantsignal.services.base import InvalidParametersError
from quantsignal.services.data_ingestion.interface import MarketDataGateway

logger = logging.getLogger(__name__)

# Base prices for common symbols
SYMBOL_BASE_PRICES = {
    "BTC/USDT": 65000.0,
    "ETH/USDT": 3400.0,
    "SOL/USDT": 150.0,
    "BNB/USDT": 580.0,
    "XRP/USDT": 0.55,
}

# Bars generated on first touch of a (symbol, timeframe)
SEED_BARS = 1000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def get_base_price(symbol: str) -> float:
    return SYMBOL_BASE_PRICES.get(symbol, 100.0)


def last_closed_open(timeframe: Timeframe, now: datetime) -> datetime:
    """Open time of the most recent fully closed bar."""
    if timeframe is Timeframe.MN1:
        current_open = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    else:
        minutes = int((now - _EPOCH).total_seconds() // 60)
        current_open = _EPOCH + timedelta(minutes=minutes - minutes % timeframe.minutes)
    return timeframe.shift(current_open, -1)


class SyntheticGateway(MarketDataGateway):
    """
    Deterministic random walk per (symbol, timeframe).

    The series is generated once, then extended one bar at a time as the
    clock passes bar boundaries, so history and latest-candle calls agree.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        volatility: float = 0.01,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.seed = settings.synthetic_seed if seed is None else seed
        self.volatility = volatility
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._series: dict[tuple[str, Timeframe], list[Candle]] = {}
        self._rngs: dict[tuple[str, Timeframe], random.Random] = {}

    @property
    def name(self) -> str:
        return "SyntheticGateway"

    def _rng(self, key: tuple[str, Timeframe]) -> random.Random:
        if key not in self._rngs:
            salt = zlib.crc32(f"{key[0]}|{key[1].value}".encode())
            self._rngs[key] = random.Random(self.seed ^ salt)
        return self._rngs[key]

    def _next_candle(self, rng: random.Random, timestamp: datetime, open_price: float) -> Candle:
        change = rng.gauss(0.0, self.volatility) * open_price
        close_price = max(open_price + change, open_price * 0.5)
        wick = abs(change) * 0.5 + open_price * self.volatility * 0.25 * rng.random()
        high_price = max(open_price, close_price) + wick * rng.random()
        body_low = min(open_price, close_price)
        low_price = max(body_low - wick * rng.random(), body_low * 0.5)
        return Candle(
            timestamp=timestamp,
            open=open_price,
            high=high_price,
            low=low_price,
            close=close_price,
            volume=rng.uniform(10.0, 1000.0),
        )

    def _advance(self, symbol: str, timeframe: Timeframe) -> list[Candle]:
        key = (symbol, timeframe)
        rng = self._rng(key)
        target = last_closed_open(timeframe, self._clock())
        series = self._series.get(key)

        if series is None:
            series = []
            timestamp = timeframe.shift(target, -(SEED_BARS - 1))
            price = get_base_price(symbol)
            logger.debug(f"Seeding synthetic series {symbol} {timeframe.value}")
        else:
            timestamp = timeframe.next_open(series[-1].timestamp)
            price = series[-1].close

        while timestamp <= target:
            candle = self._next_candle(rng, timestamp, price)
            series.append(candle)
            price = candle.close
            timestamp = timeframe.next_open(timestamp)

        self._series[key] = series
        return series

    async def fetch_history(self, symbol: str, timeframe: Timeframe, n: int) -> list[Candle]:
        if n < 1:
            raise InvalidParametersError(self.name, f"n must be >= 1, got {n}")
        return list(self._advance(symbol, timeframe)[-n:])

    async def fetch_latest_candle(self, symbol: str, timeframe: Timeframe) -> Candle:
        return self._advance(symbol, timeframe)[-1]
