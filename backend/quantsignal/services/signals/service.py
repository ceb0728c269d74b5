"""
Signal Query Service

Read side of the engine. Every method reads the current snapshot once, so
a single call never mixes two scheduler cycles.
"""

import logging
from typing import Optional, Union

from quantsignal.schemas.gateway import RateLimiterStatus
from quantsignal.schemas.market import Timeframe, TradingStyle, normalize_symbol, parse_timeframe
from quantsignal.schemas.risk import RiskAssessment
from quantsignal.schemas.signal import ConfluenceResult, Signal
from quantsignal.services.base import (
    InsufficientHistoryError,
    InvalidParametersError,
    InvalidTimeframeError,
    SignalNotFoundError,
)
from quantsignal.services.cache.signal_cache import SignalCache, SignalSnapshot
from quantsignal.services.confluence import ConfluenceEngine
from quantsignal.services.data_ingestion.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

SERVICE_NAME = "SignalQueryService"


def _symbol(symbol: str) -> str:
    try:
        return normalize_symbol(symbol)
    except ValueError as e:
        raise InvalidParametersError(SERVICE_NAME, str(e)) from None


def _timeframe(timeframe: Union[Timeframe, str]) -> Timeframe:
    if isinstance(timeframe, Timeframe):
        return timeframe
    try:
        return parse_timeframe(timeframe)
    except ValueError as e:
        raise InvalidTimeframeError(SERVICE_NAME, str(e)) from None


class SignalQueryService:
    def __init__(
        self,
        cache: SignalCache,
        limiter: RateLimiter,
        confluence_engine: ConfluenceEngine,
        default_style: TradingStyle = TradingStyle.SWING,
    ):
        self.cache = cache
        self.limiter = limiter
        self.confluence_engine = confluence_engine
        self.default_style = default_style

    def _not_found(self, snapshot: SignalSnapshot, symbol: str, timeframe: Timeframe, what: str):
        error = snapshot.errors.get((symbol, timeframe))
        details = {"symbol": symbol, "timeframe": timeframe.value}
        if error is not None:
            details["reason"] = error.message
            details["error"] = type(error).__name__
        return SignalNotFoundError(
            SERVICE_NAME, f"No {what} for {symbol} {timeframe.value}", details
        )

    def get_signal(self, symbol: str, timeframe: Union[Timeframe, str]) -> Signal:
        symbol, timeframe = _symbol(symbol), _timeframe(timeframe)
        snapshot = self.cache.current()
        signal = snapshot.signals.get((symbol, timeframe))
        if signal is None:
            raise self._not_found(snapshot, symbol, timeframe, "signal")
        return signal

    def get_risk_assessment(self, symbol: str, timeframe: Union[Timeframe, str]) -> RiskAssessment:
        """Raises the recorded InsufficientHistoryError when that is why it is missing."""
        symbol, timeframe = _symbol(symbol), _timeframe(timeframe)
        snapshot = self.cache.current()
        assessment = snapshot.assessments.get((symbol, timeframe))
        if assessment is not None:
            return assessment

        error = snapshot.errors.get((symbol, timeframe))
        if isinstance(error, InsufficientHistoryError):
            raise error
        raise self._not_found(snapshot, symbol, timeframe, "risk assessment")

    def get_rate_limiter_status(self) -> RateLimiterStatus:
        return self.limiter.status()

    def get_confluence(
        self,
        symbol: str,
        timeframes: list[Union[Timeframe, str]],
        style: Optional[TradingStyle] = None,
    ) -> ConfluenceResult:
        """Multi-timeframe confluence over the cached indicator sets."""
        symbol = _symbol(symbol)
        resolved = list(dict.fromkeys(_timeframe(tf) for tf in timeframes))
        if not resolved:
            raise InvalidParametersError(SERVICE_NAME, "At least one timeframe is required")

        snapshot = self.cache.current()
        sets = {}
        for timeframe in resolved:
            indicators = snapshot.indicators.get((symbol, timeframe))
            if indicators is None:
                error = snapshot.errors.get((symbol, timeframe))
                if isinstance(error, InsufficientHistoryError):
                    raise error
                raise self._not_found(snapshot, symbol, timeframe, "indicators")
            sets[timeframe] = indicators

        return self.confluence_engine.evaluate_multi(sets, style or self.default_style)
