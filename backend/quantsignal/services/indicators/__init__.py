"""
Indicator Engine Service

CONTRACT:
    Input:  PriceSeries (ordered closed candles)
    Output: IndicatorSet

RESPONSIBILITIES:
    - RSI (Wilder), MACD, Bollinger Bands, Stochastic, ATR (Wilder)
    - Refuse to compute on short history (InsufficientHistoryError)

Uses NumPy for calculations.
All math is deterministic and reproducible.
"""

from quantsignal.services.indicators.interface import IndicatorServiceInterface
from quantsignal.services.indicators.service import IndicatorService, get_indicator_service
from quantsignal.services.indicators.calculations import MIN_HISTORY

__all__ = [
    "IndicatorServiceInterface",
    "IndicatorService",
    "get_indicator_service",
    "MIN_HISTORY",
]
