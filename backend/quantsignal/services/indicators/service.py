"""
Indicator Engine Service Implementation

Builds an IndicatorSet from a candle series. Pure NumPy calculations.
"""

import logging
import math
from typing import Optional

from quantsignal.schemas.market import PriceSeries
from quantsignal.schemas.indicators import (
    IndicatorSet,
    MACDData,
    BollingerBandsData,
    StochasticData,
)
from quantsignal.services.base import CalculationError
from quantsignal.services.indicators.interface import IndicatorServiceInterface
from quantsignal.services.indicators.calculations import (
    OHLCVData,
    rsi,
    macd,
    stochastic,
    atr,
    bollinger_bands,
    get_last_valid,
)

logger = logging.getLogger(__name__)


class IndicatorService(IndicatorServiceInterface):
    """
    Indicator Engine Service.

    All calculations are deterministic and reproducible.
    """

    async def execute(self, input_data: PriceSeries) -> IndicatorSet:
        return self.calculate(input_data)

    def calculate(self, series: PriceSeries) -> IndicatorSet:
        data = OHLCVData.from_candles(series.candles)
        closes, highs, lows = data.closes, data.highs, data.lows

        rsi_values = rsi(closes)
        macd_line, signal_line, histogram = macd(closes)
        bb_upper, bb_middle, bb_lower = bollinger_bands(closes)
        stoch_k, stoch_d = stochastic(highs, lows, closes)
        atr_values = atr(highs, lows, closes)

        readings = {
            "rsi": get_last_valid(rsi_values, math.nan),
            "macd": get_last_valid(macd_line, math.nan),
            "macd_signal": get_last_valid(signal_line, math.nan),
            "macd_histogram": get_last_valid(histogram, math.nan),
            "bb_upper": get_last_valid(bb_upper, math.nan),
            "bb_middle": get_last_valid(bb_middle, math.nan),
            "bb_lower": get_last_valid(bb_lower, math.nan),
            "stoch_k": get_last_valid(stoch_k, math.nan),
            "stoch_d": get_last_valid(stoch_d, math.nan),
            "atr": get_last_valid(atr_values, math.nan),
        }
        bad = [key for key, value in readings.items() if not math.isfinite(value)]
        if bad:
            raise CalculationError(
                self.name,
                f"Non-finite indicator readings for {series.symbol} {series.timeframe.value}",
                {"fields": bad},
            )

        last = series.candles[-1]
        return IndicatorSet(
            symbol=series.symbol,
            timeframe=series.timeframe,
            as_of=last.timestamp,
            price=last.close,
            candle_count=len(series.candles),
            rsi=readings["rsi"],
            macd=MACDData(
                value=readings["macd"],
                signal_line=readings["macd_signal"],
                histogram=readings["macd_histogram"],
            ),
            bollinger=BollingerBandsData(
                upper=readings["bb_upper"],
                middle=readings["bb_middle"],
                lower=readings["bb_lower"],
            ),
            stochastic=StochasticData(k=readings["stoch_k"], d=readings["stoch_d"]),
            atr=readings["atr"],
        )


# Singleton instance
_indicator_service: Optional[IndicatorService] = None


def get_indicator_service() -> IndicatorService:
    """Get indicator service instance."""
    global _indicator_service
    if _indicator_service is None:
        _indicator_service = IndicatorService()
    return _indicator_service
