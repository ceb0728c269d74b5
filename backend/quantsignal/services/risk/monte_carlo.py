"""
Monte Carlo Risk Simulator

Three separable stages, plus a weighted portfolio run built on them:
    PathGenerator  - geometric random walk in Decimal, injectable randomness
    evaluate_path  - stop/target barrier walk for a single path
    aggregate      - distribution statistics over per-path outcomes

All returns are percentages of the entry price, oriented to the trade
direction (a SHORT that falls is a positive return).
"""

import logging
import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Optional, Sequence

import numpy as np

from quantsignal.schemas.market import Direction, Timeframe, MINUTES_PER_YEAR
from quantsignal.schemas.risk import RiskAssessment, RiskLevel
from quantsignal.schemas.signal import Signal
from quantsignal.services.base import CalculationError, InvalidParametersError

logger = logging.getLogger(__name__)

SERVICE_NAME = "MonteCarloSimulator"

MIN_ITERATIONS = 1000
DECIMAL_PRECISION = 34

_HUNDRED = Decimal("100")
_ONE = Decimal("1")


# =============================================================================
# INPUTS / OUTPUTS
# =============================================================================


@dataclass(frozen=True)
class SimulationSetup:
    """One trade to simulate. volatility is annualized (0.8 = 80%)."""

    direction: Direction
    entry_price: float
    stop_loss: float
    take_profit: float
    timeframe: Timeframe
    volatility: float
    drift: float = 0.0

    @classmethod
    def from_signal(cls, signal: Signal, atr: float, drift: float = 0.0) -> "SimulationSetup":
        return cls(
            direction=signal.direction,
            entry_price=signal.entry_price,
            stop_loss=signal.stop_loss,
            take_profit=signal.take_profit,
            timeframe=signal.timeframe,
            volatility=annualized_volatility(atr, signal.entry_price, signal.timeframe),
            drift=drift,
        )


@dataclass(frozen=True)
class PathOutcome:
    return_percent: Decimal
    drawdown_percent: Decimal
    exit_reason: str  # "stop", "target" or "horizon"


def annualized_volatility(atr: float, price: float, timeframe: Timeframe) -> float:
    """ATR/price per bar, scaled by sqrt(bars per year)."""
    if price <= 0 or atr < 0 or not math.isfinite(atr):
        raise InvalidParametersError(
            SERVICE_NAME, f"Cannot derive volatility from atr={atr!r} price={price!r}"
        )
    bars_per_year = MINUTES_PER_YEAR / timeframe.minutes
    return (atr / price) * math.sqrt(bars_per_year)


# =============================================================================
# PATH GENERATION
# =============================================================================


class PathGenerator:
    """
    Geometric Brownian motion paths.

    The random source is a numpy Generator, so tests can pass a seeded one
    (or subclass and override `shocks` to feed exact paths).
    """

    def __init__(self, rng: Optional[np.random.Generator] = None, seed: Optional[int] = None):
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def shocks(self, n_paths: int, steps: int) -> np.ndarray:
        return self.rng.standard_normal((n_paths, steps))

    def generate(
        self,
        entry_price: Decimal,
        sigma_step: float,
        drift_step: float,
        steps: int,
        n_paths: int,
    ) -> list[list[Decimal]]:
        """Price paths of length steps + 1, each starting at entry_price."""
        z = self.shocks(n_paths, steps)
        log_factors = (drift_step - 0.5 * sigma_step**2) + sigma_step * z
        factors = np.exp(log_factors)

        paths: list[list[Decimal]] = []
        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            ctx.rounding = ROUND_HALF_UP
            for row in factors:
                price = entry_price
                path = [price]
                for factor in row:
                    price = price * Decimal(str(float(factor)))
                    path.append(price)
                paths.append(path)
        return paths


# =============================================================================
# PATH EVALUATION
# =============================================================================


def evaluate_path(
    path: Sequence[Decimal],
    direction: Direction,
    stop_loss: Decimal,
    take_profit: Decimal,
) -> PathOutcome:
    """
    Walk one path until the stop or target is touched.

    NEUTRAL is evaluated with LONG orientation. A path that touches neither
    barrier is marked to its last price.
    """
    entry = path[0]
    short = direction == Direction.SHORT

    def oriented(price: Decimal) -> Decimal:
        move = (price - entry) / entry * _HUNDRED
        return -move if short else move

    peak = _ONE
    max_dd = Decimal(0)
    exit_price = path[-1]
    reason = "horizon"

    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        for price in path[1:]:
            if (price >= stop_loss) if short else (price <= stop_loss):
                exit_price, reason = stop_loss, "stop"
            elif (price <= take_profit) if short else (price >= take_profit):
                exit_price, reason = take_profit, "target"
            else:
                exit_price = price

            equity = _ONE + oriented(exit_price) / _HUNDRED
            if equity > peak:
                peak = equity
            drawdown = (peak - equity) / peak * _HUNDRED
            if drawdown > max_dd:
                max_dd = drawdown

            if reason != "horizon":
                break

        return PathOutcome(
            return_percent=oriented(exit_price),
            drawdown_percent=max_dd,
            exit_reason=reason,
        )


# =============================================================================
# AGGREGATION
# =============================================================================


def classify_risk(volatility: float, var95: float) -> RiskLevel:
    """Bucket the volatility x |VaR95| score."""
    score = volatility * abs(var95)
    if score < 0.5:
        return RiskLevel.VERY_LOW
    if score < 2:
        return RiskLevel.LOW
    if score < 6:
        return RiskLevel.MODERATE
    if score < 15:
        return RiskLevel.HIGH
    return RiskLevel.VERY_HIGH


def aggregate(
    returns: Sequence[Decimal],
    drawdowns: Optional[Sequence[Decimal]] = None,
) -> RiskAssessment:
    """
    Distribution statistics over per-path returns (percent).

    Sharpe is reported as 0 when the return distribution has no spread.
    maxDrawdown defaults to the worst negative return when no per-path
    drawdowns are supplied.
    """
    n = len(returns)
    if n == 0:
        raise CalculationError(SERVICE_NAME, "No simulated outcomes to aggregate")

    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        decimals = [Decimal(r) if not isinstance(r, Decimal) else r for r in returns]
        mean = sum(decimals, Decimal(0)) / n
        variance = sum(((r - mean) ** 2 for r in decimals), Decimal(0)) / n
        std = variance.sqrt()

    values = np.array([float(r) for r in decimals])
    var95 = float(np.percentile(values, 5))
    ci_low, ci_high = (float(x) for x in np.percentile(values, [2.5, 97.5]))

    expected = float(mean)
    volatility = float(std)
    sharpe = expected / volatility if volatility > 0 else 0.0
    win_probability = float(np.count_nonzero(values > 0)) / n * 100

    if drawdowns:
        max_drawdown = float(max(drawdowns))
    else:
        max_drawdown = max(0.0, -float(values.min()))

    if not all(math.isfinite(x) for x in (expected, volatility, var95, ci_low, ci_high)):
        raise CalculationError(SERVICE_NAME, "Non-finite simulation statistics")

    return RiskAssessment(
        expected_return=round(expected, 6),
        volatility=round(volatility, 6),
        var95=round(var95, 6),
        max_drawdown=round(max_drawdown, 6),
        win_probability=round(win_probability, 4),
        sharpe_ratio=round(sharpe, 6),
        confidence_interval=(round(ci_low, 6), round(ci_high, 6)),
        risk_level=classify_risk(volatility, var95),
        iterations=n,
    )


# =============================================================================
# SIMULATOR
# =============================================================================


class MonteCarloSimulator:
    """
    Runs N independent paths over horizon_bars bars of the signal's
    timeframe, split into `steps` simulation steps.
    """

    def __init__(
        self,
        iterations: int = MIN_ITERATIONS,
        steps: int = 24,
        horizon_bars: int = 24,
        generator: Optional[PathGenerator] = None,
    ):
        if iterations < MIN_ITERATIONS:
            raise InvalidParametersError(
                SERVICE_NAME, f"iterations must be >= {MIN_ITERATIONS}, got {iterations}"
            )
        if steps < 1 or horizon_bars < 1:
            raise InvalidParametersError(SERVICE_NAME, "steps and horizon_bars must be >= 1")
        self.iterations = iterations
        self.steps = steps
        self.horizon_bars = horizon_bars
        self.generator = generator or PathGenerator()

    @property
    def name(self) -> str:
        return SERVICE_NAME

    def _validate(self, setup: SimulationSetup) -> None:
        if setup.entry_price <= 0 or setup.stop_loss <= 0 or setup.take_profit <= 0:
            raise InvalidParametersError(self.name, "Prices must be positive")
        if setup.volatility < 0 or not math.isfinite(setup.volatility):
            raise InvalidParametersError(self.name, f"Invalid volatility {setup.volatility!r}")
        if setup.direction == Direction.SHORT:
            ordered = setup.take_profit < setup.entry_price < setup.stop_loss
        else:
            ordered = setup.stop_loss < setup.entry_price < setup.take_profit
        if not ordered:
            raise InvalidParametersError(
                self.name,
                f"{setup.direction.value} stop/target on the wrong side of entry",
                {
                    "entry": setup.entry_price,
                    "stop_loss": setup.stop_loss,
                    "take_profit": setup.take_profit,
                },
            )

    def _outcomes(self, setup: SimulationSetup) -> list[PathOutcome]:
        self._validate(setup)

        horizon_years = self.horizon_bars * setup.timeframe.minutes / MINUTES_PER_YEAR
        dt = horizon_years / self.steps
        sigma_step = setup.volatility * math.sqrt(dt)
        drift_step = setup.drift * dt

        entry = Decimal(str(setup.entry_price))
        stop = Decimal(str(setup.stop_loss))
        target = Decimal(str(setup.take_profit))

        paths = self.generator.generate(entry, sigma_step, drift_step, self.steps, self.iterations)
        return [evaluate_path(p, setup.direction, stop, target) for p in paths]

    def simulate(self, setup: SimulationSetup) -> RiskAssessment:
        outcomes = self._outcomes(setup)
        assessment = aggregate(
            [o.return_percent for o in outcomes],
            [o.drawdown_percent for o in outcomes],
        )
        logger.debug(
            f"{setup.direction.value} {setup.timeframe.value} entry={setup.entry_price} "
            f"vol={setup.volatility:.4f}: E[r]={assessment.expected_return:.4f}% "
            f"VaR95={assessment.var95:.4f}% risk={assessment.risk_level.value}"
        )
        return assessment

    def simulate_signal(self, signal: Signal, atr: float, drift: float = 0.0) -> RiskAssessment:
        return self.simulate(SimulationSetup.from_signal(signal, atr, drift))

    def simulate_batch(self, setups: Sequence[SimulationSetup]) -> list[RiskAssessment]:
        return [self.simulate(s) for s in setups]

    def simulate_portfolio(
        self, setups: Sequence[SimulationSetup], weights: Sequence[float]
    ) -> RiskAssessment:
        """
        Weighted portfolio of independent trades.

        Weights are normalised to sum to 1. Iteration i of the portfolio
        combines iteration i of every trade, so returns and drawdowns are
        weighted sums per iteration.
        """
        if not setups:
            raise InvalidParametersError(self.name, "Portfolio needs at least one setup")
        if len(setups) != len(weights):
            raise InvalidParametersError(
                self.name,
                "setups and weights must have the same length",
                {"setups": len(setups), "weights": len(weights)},
            )
        if any(not math.isfinite(w) or w < 0 for w in weights) or sum(weights) <= 0:
            raise InvalidParametersError(
                self.name, f"weights must be non-negative with a positive sum, got {list(weights)}"
            )

        total = sum(weights)
        runs = [
            (Decimal(str(w / total)), self._outcomes(setup)) for setup, w in zip(setups, weights)
        ]

        returns, drawdowns = [], []
        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            for i in range(self.iterations):
                returns.append(
                    sum((w * outcomes[i].return_percent for w, outcomes in runs), Decimal(0))
                )
                drawdowns.append(
                    sum((w * outcomes[i].drawdown_percent for w, outcomes in runs), Decimal(0))
                )

        assessment = aggregate(returns, drawdowns)
        logger.debug(
            f"Portfolio of {len(setups)}: E[r]={assessment.expected_return:.4f}% "
            f"VaR95={assessment.var95:.4f}% risk={assessment.risk_level.value}"
        )
        return assessment
