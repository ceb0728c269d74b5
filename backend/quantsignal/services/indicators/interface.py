"""
Indicator Engine Service Interface

Defines the contract for the indicator calculation layer.
"""

from abc import abstractmethod

from quantsignal.services.base import BaseService
from quantsignal.schemas.market import PriceSeries
from quantsignal.schemas.indicators import IndicatorSet


class IndicatorServiceInterface(BaseService[PriceSeries, IndicatorSet]):
    """
    Indicator Engine Service Contract.

    INPUT: PriceSeries
        - symbol, timeframe, ordered closed candles

    OUTPUT: IndicatorSet
        - RSI, MACD, Bollinger, Stochastic, ATR as of the last candle

    Raises InsufficientHistoryError when any lookback is not covered.
    """

    @property
    def name(self) -> str:
        return "IndicatorService"

    @abstractmethod
    async def execute(self, input_data: PriceSeries) -> IndicatorSet:
        pass

    @abstractmethod
    def calculate(self, series: PriceSeries) -> IndicatorSet:
        """Synchronous calculation for callers already off the event loop."""
        pass

    async def health_check(self) -> bool:
        """Indicator service is always healthy (pure computation)."""
        return True
