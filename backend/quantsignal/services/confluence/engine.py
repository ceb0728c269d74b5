"""
Confluence Signal Engine

Turns one IndicatorSet (single timeframe) or several (multi-timeframe
confirmation) into a direction plus a 0-100 confidence score.

Scoring:
    Each indicator casts a BUY/SELL/NEUTRAL vote carrying its configured
    weight. confidence = 100 * (weight agreeing with the emitted direction)
    / (total weight). The leading side must hold at least min_agreement of
    the total weight, otherwise the call collapses to NEUTRAL. An exact
    BUY/SELL weight tie is NEUTRAL.

    Across timeframes, each timeframe's own result votes with an effective
    weight of timeframe_weight * confidence / 100, against a total of the
    summed timeframe weights, then goes through the same tally.
"""

import logging
from typing import Optional

from quantsignal.schemas.indicators import IndicatorKey, IndicatorSet, SignalType
from quantsignal.schemas.market import Direction, Timeframe, TradingStyle
from quantsignal.schemas.signal import AgreementLevel, ConfluenceResult, Vote
from quantsignal.services.base import InsufficientHistoryError, InvalidParametersError
from quantsignal.services.confluence.config import (
    ConfluenceConfig,
    DEFAULT_CONFLUENCE_CONFIG,
)
from quantsignal.services.indicators.calculations import MIN_HISTORY

logger = logging.getLogger(__name__)

SERVICE_NAME = "ConfluenceEngine"

_DIRECTION_FOR_VOTE = {
    SignalType.BUY: Direction.LONG,
    SignalType.SELL: Direction.SHORT,
    SignalType.NEUTRAL: Direction.NEUTRAL,
}
_VOTE_FOR_DIRECTION = {v: k for k, v in _DIRECTION_FOR_VOTE.items()}


def agreement_level(confidence: float) -> AgreementLevel:
    if confidence >= 80:
        return AgreementLevel.STRONG
    if confidence >= 60:
        return AgreementLevel.MODERATE
    if confidence >= 40:
        return AgreementLevel.WEAK
    return AgreementLevel.CONFLICTED


# =============================================================================
# INDICATOR VOTES
# =============================================================================


def indicator_votes(
    indicators: IndicatorSet,
    config: ConfluenceConfig,
    price: Optional[float] = None,
) -> tuple[list[Vote], list[str]]:
    """
    Directional vote for each indicator, with a one-line reason per vote.

    ATR is non-directional and does not vote.
    """
    price = indicators.price if price is None else price
    weights = config.indicator_weights
    votes: list[Vote] = []
    reasons: list[str] = []

    def cast(key: IndicatorKey, vote: SignalType, reason: str) -> None:
        votes.append(Vote(source=key.value, vote=vote, weight=weights[key]))
        reasons.append(f"{reason} -> {vote.value}")

    # RSI
    rsi = indicators.rsi
    if rsi < config.rsi_oversold:
        cast(IndicatorKey.RSI, SignalType.BUY, f"RSI {rsi:.1f} oversold")
    elif rsi > config.rsi_overbought:
        cast(IndicatorKey.RSI, SignalType.SELL, f"RSI {rsi:.1f} overbought")
    else:
        cast(IndicatorKey.RSI, SignalType.NEUTRAL, f"RSI {rsi:.1f} mid-range")

    # MACD
    hist = indicators.macd.histogram
    if hist > 0:
        cast(IndicatorKey.MACD, SignalType.BUY, f"MACD histogram {hist:+.4f} above signal")
    elif hist < 0:
        cast(IndicatorKey.MACD, SignalType.SELL, f"MACD histogram {hist:+.4f} below signal")
    else:
        cast(IndicatorKey.MACD, SignalType.NEUTRAL, "MACD on its signal line")

    # Bollinger
    bb = indicators.bollinger
    if bb.upper <= bb.lower:
        cast(IndicatorKey.BOLLINGER, SignalType.NEUTRAL, "Bollinger bands collapsed")
    elif price <= bb.lower:
        cast(IndicatorKey.BOLLINGER, SignalType.BUY, f"price at/below lower band {bb.lower:.4f}")
    elif price >= bb.upper:
        cast(IndicatorKey.BOLLINGER, SignalType.SELL, f"price at/above upper band {bb.upper:.4f}")
    else:
        cast(IndicatorKey.BOLLINGER, SignalType.NEUTRAL, "price inside Bollinger bands")

    # Stochastic
    k = indicators.stochastic.k
    if k < config.stoch_oversold:
        cast(IndicatorKey.STOCHASTIC, SignalType.BUY, f"Stochastic %K {k:.1f} oversold")
    elif k > config.stoch_overbought:
        cast(IndicatorKey.STOCHASTIC, SignalType.SELL, f"Stochastic %K {k:.1f} overbought")
    else:
        cast(IndicatorKey.STOCHASTIC, SignalType.NEUTRAL, f"Stochastic %K {k:.1f} mid-range")

    # Trend: price against the 20-period mean
    middle = bb.middle
    if price > middle:
        cast(IndicatorKey.TREND, SignalType.BUY, f"price above SMA20 {middle:.4f}")
    elif price < middle:
        cast(IndicatorKey.TREND, SignalType.SELL, f"price below SMA20 {middle:.4f}")
    else:
        cast(IndicatorKey.TREND, SignalType.NEUTRAL, "price on SMA20")

    return votes, reasons


# =============================================================================
# TALLY
# =============================================================================


def tally(
    votes: list[Vote], total_weight: float, min_agreement: float
) -> tuple[Direction, float]:
    """
    Weighted agreement among votes.

    Returns (direction, confidence). total_weight may exceed the sum of vote
    weights (multi-timeframe votes are discounted by their own confidence).
    """
    if total_weight <= 0:
        return Direction.NEUTRAL, 0.0

    buckets = {SignalType.BUY: 0.0, SignalType.SELL: 0.0, SignalType.NEUTRAL: 0.0}
    for vote in votes:
        buckets[vote.vote] += vote.weight

    buy_w, sell_w = buckets[SignalType.BUY], buckets[SignalType.SELL]

    if buy_w != sell_w:
        leader = SignalType.BUY if buy_w > sell_w else SignalType.SELL
        share = buckets[leader] / total_weight
        if share >= min_agreement:
            return _DIRECTION_FOR_VOTE[leader], _clamp_confidence(share * 100)

    return Direction.NEUTRAL, _clamp_confidence(buckets[SignalType.NEUTRAL] / total_weight * 100)


def _clamp_confidence(value: float) -> float:
    return round(min(max(value, 0.0), 100.0), 2)


# =============================================================================
# ENGINE
# =============================================================================


class ConfluenceEngine:
    """Stateless scorer bound to one validated ConfluenceConfig."""

    def __init__(self, config: ConfluenceConfig = DEFAULT_CONFLUENCE_CONFIG):
        self.config = config

    @property
    def name(self) -> str:
        return SERVICE_NAME

    def evaluate(
        self, indicators: IndicatorSet, price: Optional[float] = None
    ) -> ConfluenceResult:
        """Single-timeframe confluence."""
        count = indicators.candle_count
        if count < MIN_HISTORY:
            raise InsufficientHistoryError(
                self.name, MIN_HISTORY, count, f"{indicators.symbol} {indicators.timeframe.value}"
            )

        votes, reasons = indicator_votes(indicators, self.config, price)

        if count < self.config.ideal_history:
            logger.debug(
                f"{indicators.symbol} {indicators.timeframe.value}: "
                f"{count}/{self.config.ideal_history} candles, degraded output"
            )
            reasons.append(
                f"history {count}/{self.config.ideal_history} candles below ideal, "
                f"confidence withheld"
            )
            return ConfluenceResult(
                direction=Direction.NEUTRAL,
                confidence=0.0,
                agreement_level=AgreementLevel.CONFLICTED,
                votes=votes,
                reasoning=reasons,
                degraded=True,
                timeframes=[indicators.timeframe],
            )

        total = sum(self.config.indicator_weights.values())
        direction, confidence = tally(votes, total, self.config.min_agreement)
        reasons.append(f"{direction.value} with {confidence:.1f}% weighted agreement")

        return ConfluenceResult(
            direction=direction,
            confidence=confidence,
            agreement_level=agreement_level(confidence),
            votes=votes,
            reasoning=reasons,
            timeframes=[indicators.timeframe],
        )

    def evaluate_multi(
        self,
        indicator_sets: dict[Timeframe, IndicatorSet],
        style: TradingStyle = TradingStyle.SWING,
    ) -> ConfluenceResult:
        """
        Multi-timeframe confluence.

        Every timeframe is scored on its own first. A degraded timeframe
        still counts towards the total weight but contributes no agreement.
        """
        if not indicator_sets:
            raise InvalidParametersError(self.name, "At least one timeframe is required")

        symbols = {s.symbol for s in indicator_sets.values()}
        if len(symbols) != 1:
            raise InvalidParametersError(
                self.name, "All timeframes must belong to one symbol", {"symbols": sorted(symbols)}
            )

        ordered = sorted(indicator_sets.items(), key=lambda item: item[0].minutes)
        votes: list[Vote] = []
        reasons: list[str] = []
        total = 0.0
        degraded = False

        for timeframe, indicators in ordered:
            result = self.evaluate(indicators)
            tf_weight = self.config.timeframe_weight(style, timeframe)
            total += tf_weight
            degraded = degraded or result.degraded

            votes.append(
                Vote(
                    source=timeframe.value,
                    vote=_VOTE_FOR_DIRECTION[result.direction],
                    weight=tf_weight * result.confidence / 100,
                )
            )
            reasons.append(
                f"{timeframe.value} (weight {tf_weight:g}): {result.direction.value} "
                f"{result.confidence:.1f}%"
            )

        direction, confidence = tally(votes, total, self.config.min_agreement)
        reasons.append(
            f"{style.value} confluence across {len(ordered)} timeframes: "
            f"{direction.value} {confidence:.1f}%"
        )

        return ConfluenceResult(
            direction=direction,
            confidence=confidence,
            agreement_level=agreement_level(confidence),
            votes=votes,
            reasoning=reasons,
            degraded=degraded,
            style=style,
            timeframes=[tf for tf, _ in ordered],
        )
