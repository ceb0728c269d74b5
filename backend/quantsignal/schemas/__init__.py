"""
QuantSignal Schema Contracts

JSON contracts between engine components and the query interface.
"""

from quantsignal.schemas.market import (
    Candle,
    Direction,
    PriceSeries,
    Timeframe,
    TradingStyle,
)
from quantsignal.schemas.indicators import (
    IndicatorSet,
    MACDData,
    BollingerBandsData,
    StochasticData,
    SignalType,
)
from quantsignal.schemas.signal import AgreementLevel, ConfluenceResult, Signal, Vote
from quantsignal.schemas.risk import RiskAssessment, RiskLevel, RiskLevels, RiskParameters
from quantsignal.schemas.gateway import CircuitState, RateLimiterStatus

__all__ = [
    # Market
    "Candle",
    "Direction",
    "PriceSeries",
    "Timeframe",
    "TradingStyle",
    # Indicators
    "IndicatorSet",
    "MACDData",
    "BollingerBandsData",
    "StochasticData",
    "SignalType",
    # Signal
    "AgreementLevel",
    "ConfluenceResult",
    "Signal",
    "Vote",
    # Risk
    "RiskAssessment",
    "RiskLevel",
    "RiskLevels",
    "RiskParameters",
    # Gateway
    "CircuitState",
    "RateLimiterStatus",
]
