"""
Unified Risk-Level Calculator

Pure function: (entry price, direction, timeframe, optional risk:reward)
-> stop-loss / take-profit prices.

The per-timeframe table below is the only source of stop and target
distances. Prices are computed in Decimal from the string form of the
inputs, so 50000 at 0.80% is exactly 49600.
"""

import math
from decimal import Decimal
from types import MappingProxyType
from typing import Optional, Union

from quantsignal.schemas.market import Direction, Timeframe, parse_timeframe
from quantsignal.schemas.risk import RiskLevels, RiskParameters
from quantsignal.services.base import (
    CalculationError,
    InvalidDirectionError,
    InvalidEntryPriceError,
    InvalidParametersError,
    InvalidTimeframeError,
)

SERVICE_NAME = "RiskLevelCalculator"

_HUNDRED = Decimal("100")
_TWO = Decimal("2")


def _params(sl: float, tp: float, max_risk: float) -> RiskParameters:
    return RiskParameters(
        stop_loss_percent=sl, take_profit_percent=tp, max_risk_percent=max_risk
    )


RISK_TABLE = MappingProxyType(
    {
        Timeframe.M1: _params(0.15, 0.30, 0.5),
        Timeframe.M5: _params(0.25, 0.50, 0.75),
        Timeframe.M15: _params(0.40, 0.80, 1.0),
        Timeframe.M30: _params(0.60, 1.20, 1.25),
        Timeframe.H1: _params(0.80, 1.60, 1.5),
        Timeframe.H4: _params(1.50, 3.75, 2.0),
        Timeframe.H12: _params(2.25, 5.625, 2.5),
        Timeframe.D1: _params(3.00, 7.50, 3.0),
        Timeframe.D3: _params(4.50, 13.50, 3.5),
        Timeframe.W1: _params(6.00, 18.00, 4.0),
        Timeframe.MN1: _params(8.00, 24.00, 5.0),
    }
)


def get_risk_parameters(timeframe: Union[Timeframe, str]) -> RiskParameters:
    return RISK_TABLE[_coerce_timeframe(timeframe)]


def _coerce_timeframe(timeframe: Union[Timeframe, str]) -> Timeframe:
    if isinstance(timeframe, Timeframe):
        return timeframe
    try:
        return parse_timeframe(str(timeframe))
    except ValueError as e:
        raise InvalidTimeframeError(SERVICE_NAME, str(e)) from None


def _coerce_direction(direction: Union[Direction, str]) -> Direction:
    if isinstance(direction, Direction):
        return direction
    try:
        return Direction(str(direction).upper())
    except ValueError:
        raise InvalidDirectionError(
            SERVICE_NAME,
            f"Unknown direction {direction!r}. Allowed: {[d.value for d in Direction]}",
        ) from None


def _coerce_entry(entry_price) -> Decimal:
    try:
        value = float(entry_price)
    except (TypeError, ValueError):
        raise InvalidEntryPriceError(SERVICE_NAME, f"Entry price {entry_price!r} is not a number") from None
    if not math.isfinite(value) or value <= 0:
        raise InvalidEntryPriceError(
            SERVICE_NAME, f"Entry price must be a positive finite number, got {entry_price!r}"
        )
    return Decimal(str(value))


def calculate_risk_levels(
    entry_price: float,
    direction: Union[Direction, str],
    timeframe: Union[Timeframe, str],
    risk_reward: Optional[float] = None,
) -> RiskLevels:
    """
    Stop-loss and take-profit for an entry.

    LONG:    SL = entry * (1 - sl%), TP = entry * (1 + tp%)
    SHORT:   mirrored
    NEUTRAL: half the stop distance on both sides (RR 1), laid out like LONG

    risk_reward, when given, replaces the table take-profit distance with
    sl% * risk_reward. The returned ratio is recomputed from the prices.

    Raises:
        InvalidEntryPriceError, InvalidDirectionError, InvalidTimeframeError,
        InvalidParametersError: malformed input, or a risk_reward that would
            put a SHORT target at or below zero
        CalculationError: a level ended up on the wrong side of entry
    """
    entry = _coerce_entry(entry_price)
    direction = _coerce_direction(direction)
    timeframe = _coerce_timeframe(timeframe)
    params = RISK_TABLE[timeframe]

    sl_pct = Decimal(str(params.stop_loss_percent))
    tp_pct = Decimal(str(params.take_profit_percent))

    if risk_reward is not None:
        if not math.isfinite(risk_reward) or risk_reward <= 0:
            raise InvalidParametersError(
                SERVICE_NAME, f"risk_reward must be a positive number, got {risk_reward!r}"
            )
        tp_pct = sl_pct * Decimal(str(risk_reward))
        if direction == Direction.SHORT and tp_pct >= _HUNDRED:
            raise InvalidParametersError(
                SERVICE_NAME,
                f"risk_reward {risk_reward} puts a SHORT target at or below zero",
                {"stop_loss_percent": params.stop_loss_percent, "risk_reward": risk_reward},
            )

    if direction == Direction.LONG:
        stop = entry * (1 - sl_pct / _HUNDRED)
        target = entry * (1 + tp_pct / _HUNDRED)
    elif direction == Direction.SHORT:
        stop = entry * (1 + sl_pct / _HUNDRED)
        target = entry * (1 - tp_pct / _HUNDRED)
    else:
        half = sl_pct / _TWO
        stop = entry * (1 - half / _HUNDRED)
        target = entry * (1 + half / _HUNDRED)

    if direction == Direction.SHORT:
        ordered = target < entry < stop
    else:
        ordered = stop < entry < target
    if not ordered or stop <= 0 or target <= 0:
        raise CalculationError(
            SERVICE_NAME,
            f"{direction.value} levels on the wrong side of entry",
            {"entry": str(entry), "stop_loss": str(stop), "take_profit": str(target)},
        )

    risk = abs(entry - stop)
    reward = abs(target - entry)

    return RiskLevels(
        entry_price=float(entry),
        direction=direction,
        timeframe=timeframe,
        stop_loss=float(stop),
        take_profit=float(target),
        risk_reward_ratio=float(reward / risk),
        risk_percent=float(risk / entry * _HUNDRED),
        reward_percent=float(reward / entry * _HUNDRED),
        max_risk_percent=params.max_risk_percent,
    )
