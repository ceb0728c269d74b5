"""
CONTRACT 1: Market Data

Candles are the only raw input of the engine. Everything downstream
(indicators, confluence, risk levels, simulation) is derived from them.
"""

import calendar
from datetime import datetime, timedelta
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# ENUMS
# =============================================================================


class Timeframe(str, Enum):
    M1 = "1m"
    M5 = "5m"
    M15 = "15m"
    M30 = "30m"
    H1 = "1h"
    H4 = "4h"
    H12 = "12h"
    D1 = "1d"
    D3 = "3d"
    W1 = "1w"
    MN1 = "1M"

    @property
    def minutes(self) -> int:
        return TIMEFRAME_MINUTES[self]

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.minutes)

    def shift(self, opened_at: datetime, bars: int = 1) -> datetime:
        """
        Open time of the bar `bars` bars after `opened_at` (before, if negative).

        Monthly bars open on calendar month boundaries, so their length
        varies; every other timeframe has a fixed duration.
        """
        if self is Timeframe.MN1:
            return add_months(opened_at, bars)
        return opened_at + bars * self.duration

    def next_open(self, opened_at: datetime) -> datetime:
        return self.shift(opened_at, 1)


# A month counts as 30 days for annualisation. Bar boundaries use shift().
TIMEFRAME_MINUTES: dict[Timeframe, int] = {
    Timeframe.M1: 1,
    Timeframe.M5: 5,
    Timeframe.M15: 15,
    Timeframe.M30: 30,
    Timeframe.H1: 60,
    Timeframe.H4: 240,
    Timeframe.H12: 720,
    Timeframe.D1: 1440,
    Timeframe.D3: 4320,
    Timeframe.W1: 10080,
    Timeframe.MN1: 43200,
}

MINUTES_PER_YEAR = 365 * 24 * 60


def add_months(ts: datetime, months: int) -> datetime:
    """Move `ts` by whole calendar months, clamping the day to the month's end."""
    index = ts.year * 12 + (ts.month - 1) + months
    year, month = divmod(index, 12)
    day = min(ts.day, calendar.monthrange(year, month + 1)[1])
    return ts.replace(year=year, month=month + 1, day=day)


class Direction(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"
    NEUTRAL = "NEUTRAL"


class TradingStyle(str, Enum):
    SWING = "swing"
    SCALP = "scalp"


# =============================================================================
# CANDLE
# =============================================================================


class Candle(BaseModel):
    """Single closed candlestick. Immutable once recorded."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    open: float = Field(..., gt=0)
    high: float = Field(..., gt=0)
    low: float = Field(..., gt=0)
    close: float = Field(..., gt=0)
    volume: float = Field(..., ge=0)

    @model_validator(mode="after")
    def _check_range(self) -> "Candle":
        if self.low > self.high:
            raise ValueError(f"low {self.low} above high {self.high}")
        if not (self.low <= self.open <= self.high and self.low <= self.close <= self.high):
            raise ValueError("open/close outside the high-low range")
        return self


class PriceSeries(BaseModel):
    """Ordered closed candles for one (symbol, timeframe), oldest first."""

    symbol: str
    timeframe: Timeframe
    candles: list[Candle]

    @model_validator(mode="after")
    def _check_order(self) -> "PriceSeries":
        for prev, cur in zip(self.candles, self.candles[1:]):
            if cur.timestamp <= prev.timestamp:
                raise ValueError(f"candles out of order at {cur.timestamp.isoformat()}")
        return self


def parse_timeframe(value: str) -> Timeframe:
    """Resolve a timeframe string ("1h", "1M", ...) to the enum."""
    try:
        return Timeframe(value)
    except ValueError:
        raise ValueError(
            f"Unknown timeframe {value!r}. Allowed: {[t.value for t in Timeframe]}"
        ) from None


def normalize_symbol(symbol: str) -> str:
    """Canonical symbol form: upper-case BASE/QUOTE."""
    cleaned = symbol.strip().upper().replace("-", "/").replace("_", "/")
    if not cleaned or cleaned.count("/") != 1 or cleaned.startswith("/") or cleaned.endswith("/"):
        raise ValueError(f"Symbol must look like BASE/QUOTE, got {symbol!r}")
    return cleaned
