"""
CONTRACT 2: Indicator Engine

Input: ordered Candle sequence
Output: IndicatorSet

Computed per (symbol, timeframe, as-of candle) and recomputed every cycle.
Never persisted.
"""

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field

from quantsignal.schemas.market import Timeframe


class SignalType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    NEUTRAL = "NEUTRAL"


class IndicatorKey(str, Enum):
    RSI = "rsi"
    MACD = "macd"
    BOLLINGER = "bollinger"
    STOCHASTIC = "stochastic"
    TREND = "trend"


class MACDData(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: float
    signal_line: float
    histogram: float


class BollingerBandsData(BaseModel):
    model_config = ConfigDict(frozen=True)

    upper: float
    middle: float
    lower: float


class StochasticData(BaseModel):
    model_config = ConfigDict(frozen=True)

    k: float = Field(..., ge=0, le=100)
    d: float = Field(..., ge=0, le=100)


class IndicatorSet(BaseModel):
    """All indicator readings as of the last closed candle."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    timeframe: Timeframe
    as_of: datetime
    price: float = Field(..., gt=0)
    candle_count: int = Field(..., ge=0)
    rsi: float = Field(..., ge=0, le=100)
    macd: MACDData
    bollinger: BollingerBandsData
    stochastic: StochasticData
    atr: float = Field(..., ge=0)
