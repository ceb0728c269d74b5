"""
Per-pair signal pipeline.

    candles -> IndicatorSet -> ConfluenceResult -> RiskLevels -> Signal
            -> RiskAssessment

CPU-bound and synchronous; the scheduler runs it off the event loop.
Errors propagate unchanged so the scheduler can record them per pair.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from quantsignal.schemas.indicators import IndicatorSet
from quantsignal.schemas.market import Candle, PriceSeries, Timeframe
from quantsignal.schemas.risk import RiskAssessment
from quantsignal.schemas.signal import ConfluenceResult, Signal
from quantsignal.services.base import InsufficientHistoryError
from quantsignal.services.confluence import ConfluenceEngine
from quantsignal.services.indicators import IndicatorService, MIN_HISTORY
from quantsignal.services.risk import MonteCarloSimulator, calculate_risk_levels

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PairResult:
    indicators: IndicatorSet
    confluence: ConfluenceResult
    signal: Signal
    assessment: RiskAssessment


class SignalPipeline:
    def __init__(
        self,
        indicator_service: IndicatorService,
        confluence_engine: ConfluenceEngine,
        simulator: MonteCarloSimulator,
    ):
        self.indicator_service = indicator_service
        self.confluence_engine = confluence_engine
        self.simulator = simulator

    def run(
        self,
        symbol: str,
        timeframe: Timeframe,
        candles: Sequence[Candle],
        generated_at: Optional[datetime] = None,
    ) -> PairResult:
        if len(candles) < MIN_HISTORY:
            raise InsufficientHistoryError(
                "SignalPipeline", MIN_HISTORY, len(candles), f"{symbol} {timeframe.value}"
            )

        series = PriceSeries(symbol=symbol, timeframe=timeframe, candles=list(candles))
        indicators = self.indicator_service.calculate(series)
        confluence = self.confluence_engine.evaluate(indicators)

        levels = calculate_risk_levels(indicators.price, confluence.direction, timeframe)
        signal = Signal(
            symbol=symbol,
            timeframe=timeframe,
            direction=confluence.direction,
            confidence=confluence.confidence,
            entry_price=levels.entry_price,
            stop_loss=levels.stop_loss,
            take_profit=levels.take_profit,
            risk_reward_ratio=levels.risk_reward_ratio,
            agreement_level=confluence.agreement_level,
            degraded=confluence.degraded,
            generated_at=generated_at or datetime.now(timezone.utc),
        )

        assessment = self.simulator.simulate_signal(signal, indicators.atr)

        logger.debug(
            f"{symbol} {timeframe.value}: {signal.direction.value} "
            f"{signal.confidence:.1f}% SL={signal.stop_loss} TP={signal.take_profit} "
            f"risk={assessment.risk_level.value}"
        )
        return PairResult(
            indicators=indicators,
            confluence=confluence,
            signal=signal,
            assessment=assessment,
        )
