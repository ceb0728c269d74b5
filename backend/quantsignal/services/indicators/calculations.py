"""
Technical Indicator Calculations

Pure Python/NumPy implementations of technical indicators.
All math is deterministic. Every function raises InsufficientHistoryError
instead of returning an all-NaN array when the series is too short.
"""

import numpy as np
from dataclasses import dataclass

from quantsignal.schemas.market import Candle
from quantsignal.services.base import InsufficientHistoryError

SERVICE_NAME = "IndicatorService"

RSI_PERIOD = 14
MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9
BOLLINGER_PERIOD = 20
BOLLINGER_STD = 2.0
STOCH_PERIOD = 14
STOCH_SMOOTH_K = 3
STOCH_SMOOTH_D = 3
ATR_PERIOD = 14


@dataclass
class OHLCVData:
    """OHLCV data arrays for calculations."""

    highs: np.ndarray
    lows: np.ndarray
    closes: np.ndarray

    @classmethod
    def from_candles(cls, candles: list[Candle]) -> "OHLCVData":
        return cls(
            highs=np.array([c.high for c in candles], dtype=float),
            lows=np.array([c.low for c in candles], dtype=float),
            closes=np.array([c.close for c in candles], dtype=float),
        )

    def __len__(self) -> int:
        return len(self.closes)


# =============================================================================
# LOOKBACK REQUIREMENTS
# =============================================================================


def rsi_min_length(period: int = RSI_PERIOD) -> int:
    return period + 1


def macd_min_length(slow: int = MACD_SLOW, signal: int = MACD_SIGNAL) -> int:
    return slow + signal - 1


def stochastic_min_length(
    period: int = STOCH_PERIOD, smooth_k: int = STOCH_SMOOTH_K, smooth_d: int = STOCH_SMOOTH_D
) -> int:
    return period + smooth_k + smooth_d - 2


def atr_min_length(period: int = ATR_PERIOD) -> int:
    return period + 1


# Floor lookback for a full IndicatorSet with default parameters.
MIN_HISTORY = max(
    rsi_min_length(),
    macd_min_length(),
    BOLLINGER_PERIOD,
    stochastic_min_length(),
    atr_min_length(),
)


def _require(available: int, required: int, what: str) -> None:
    if available < required:
        raise InsufficientHistoryError(SERVICE_NAME, required, available, what)


# =============================================================================
# MOVING AVERAGES
# =============================================================================


def sma(data: np.ndarray, period: int) -> np.ndarray:
    """Simple Moving Average. Windows containing NaN stay NaN."""
    result = np.full(len(data), np.nan)
    if len(data) < period:
        return result

    for i in range(period - 1, len(data)):
        result[i] = np.mean(data[i - period + 1 : i + 1])
    return result


def ema(data: np.ndarray, period: int) -> np.ndarray:
    """
    Exponential Moving Average, seeded with the SMA of the first valid window.

    Leading NaNs (e.g. the warm-up of another indicator) are skipped, so an
    EMA of an EMA-derived series is defined as soon as `period` valid values
    exist.
    """
    result = np.full(len(data), np.nan)
    valid = np.flatnonzero(~np.isnan(data))
    if len(valid) < period:
        return result

    start = valid[0]
    multiplier = 2 / (period + 1)

    # Start with SMA
    seed = start + period - 1
    result[seed] = np.mean(data[start : seed + 1])

    for i in range(seed + 1, len(data)):
        result[i] = (data[i] - result[i - 1]) * multiplier + result[i - 1]

    return result


def wilder_smooth(data: np.ndarray, period: int, start: int = 0) -> np.ndarray:
    """Wilder's running average: seed with the mean, then (prev*(n-1)+x)/n."""
    result = np.full(len(data), np.nan)
    seed = start + period - 1
    if seed >= len(data):
        return result

    result[seed] = np.mean(data[start : seed + 1])
    for i in range(seed + 1, len(data)):
        result[i] = (result[i - 1] * (period - 1) + data[i]) / period
    return result


# =============================================================================
# MOMENTUM INDICATORS
# =============================================================================


def rsi(closes: np.ndarray, period: int = RSI_PERIOD) -> np.ndarray:
    """Relative Strength Index (Wilder)."""
    _require(len(closes), rsi_min_length(period), "RSI")

    deltas = np.diff(closes)
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    avg_gain = np.mean(gains[:period])
    avg_loss = np.mean(losses[:period])

    result = np.full(len(closes), np.nan)
    result[period] = _rsi_value(avg_gain, avg_loss)

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        result[i + 1] = _rsi_value(avg_gain, avg_loss)

    return result


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        # Flat series has no direction
        return 50.0 if avg_gain == 0 else 100.0
    rs = avg_gain / avg_loss
    return float(np.clip(100 - (100 / (1 + rs)), 0.0, 100.0))


def macd(
    closes: np.ndarray,
    fast_period: int = MACD_FAST,
    slow_period: int = MACD_SLOW,
    signal_period: int = MACD_SIGNAL,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    MACD (Moving Average Convergence Divergence).

    Returns: (macd_line, signal_line, histogram)

    The histogram is computed as macd_line - signal_line from the very same
    arrays that are returned, so the identity holds exactly.
    """
    _require(len(closes), macd_min_length(slow_period, signal_period), "MACD")

    fast_ema = ema(closes, fast_period)
    slow_ema = ema(closes, slow_period)
    macd_line = fast_ema - slow_ema

    signal_line = ema(macd_line, signal_period)
    histogram = macd_line - signal_line

    return macd_line, signal_line, histogram


def stochastic(
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
    k_period: int = STOCH_PERIOD,
    smooth_k: int = STOCH_SMOOTH_K,
    smooth_d: int = STOCH_SMOOTH_D,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Slow Stochastic Oscillator.

    Returns: (k, d), both clamped to [0, 100].
    """
    _require(len(closes), stochastic_min_length(k_period, smooth_k, smooth_d), "Stochastic")

    raw_k = np.full(len(closes), np.nan)
    for i in range(k_period - 1, len(closes)):
        highest_high = np.max(highs[i - k_period + 1 : i + 1])
        lowest_low = np.min(lows[i - k_period + 1 : i + 1])

        if highest_high == lowest_low:
            raw_k[i] = 50.0
        else:
            raw_k[i] = ((closes[i] - lowest_low) / (highest_high - lowest_low)) * 100

    k = sma(raw_k, smooth_k)
    d = sma(k, smooth_d)

    return np.clip(k, 0.0, 100.0), np.clip(d, 0.0, 100.0)


# =============================================================================
# VOLATILITY INDICATORS
# =============================================================================


def true_range(highs: np.ndarray, lows: np.ndarray, closes: np.ndarray) -> np.ndarray:
    tr = np.zeros(len(closes))
    if len(closes) == 0:
        return tr
    tr[0] = highs[0] - lows[0]

    for i in range(1, len(closes)):
        tr[i] = max(
            highs[i] - lows[i],
            abs(highs[i] - closes[i - 1]),
            abs(lows[i] - closes[i - 1]),
        )
    return tr


def atr(
    highs: np.ndarray, lows: np.ndarray, closes: np.ndarray, period: int = ATR_PERIOD
) -> np.ndarray:
    """Average True Range, Wilder-smoothed. Always >= 0."""
    _require(len(closes), atr_min_length(period), "ATR")

    # The first bar has no previous close, so smoothing starts at bar 1.
    tr = true_range(highs, lows, closes)
    return np.maximum(wilder_smooth(tr, period, start=1), 0.0)


def bollinger_bands(
    closes: np.ndarray, period: int = BOLLINGER_PERIOD, std_dev: float = BOLLINGER_STD
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Bollinger Bands (population standard deviation).

    Returns: (upper, middle, lower). With zero variance the bands collapse
    onto the middle line.
    """
    _require(len(closes), period, "Bollinger")

    middle = sma(closes, period)

    std = np.full(len(closes), np.nan)
    for i in range(period - 1, len(closes)):
        std[i] = np.std(closes[i - period + 1 : i + 1])

    upper = middle + (std_dev * std)
    lower = middle - (std_dev * std)

    return upper, middle, lower


# =============================================================================
# HELPERS
# =============================================================================


def get_last_valid(arr: np.ndarray, default: float = 0.0) -> float:
    """Last non-NaN value of an indicator array."""
    valid = arr[~np.isnan(arr)]
    return float(valid[-1]) if len(valid) > 0 else default
