"""
Signal Cache & Scheduler

CONTRACT:
    GetSignal(symbol, timeframe)                 -> Signal | NotFound
    GetRiskAssessment(symbol, timeframe)         -> RiskAssessment | NotFound | InsufficientHistory
    GetRateLimiterStatus()                       -> RateLimiterStatus
    GetConfluence(symbol, timeframes, style)     -> ConfluenceResult

RESPONSIBILITIES:
    - Periodically recompute every tracked (symbol, timeframe)
    - Publish one immutable snapshot per cycle
    - Isolate per-pair failures
"""

from quantsignal.services.signals.pipeline import PairResult, SignalPipeline
from quantsignal.services.signals.scheduler import SignalScheduler, is_refresh_due
from quantsignal.services.signals.service import SignalQueryService
from quantsignal.services.signals.engine import (
    SignalEngine,
    get_signal_engine,
    set_signal_engine,
)

__all__ = [
    "PairResult",
    "SignalPipeline",
    "SignalScheduler",
    "is_refresh_due",
    "SignalQueryService",
    "SignalEngine",
    "get_signal_engine",
    "set_signal_engine",
]
