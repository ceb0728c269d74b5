"""
Risk Engine

CONTRACT:
    Input:  entry price + direction + timeframe (+ ATR for simulation)
    Output: RiskLevels, RiskAssessment

RESPONSIBILITIES:
    - Deterministic stop-loss / take-profit from the per-timeframe table
    - Monte Carlo outcome distribution (VaR, Sharpe, win probability)

PURE PYTHON - No hidden state. Monetary math in Decimal.
"""

from quantsignal.services.risk.levels import (
    RISK_TABLE,
    calculate_risk_levels,
    get_risk_parameters,
)
from quantsignal.services.risk.monte_carlo import (
    MonteCarloSimulator,
    PathGenerator,
    PathOutcome,
    SimulationSetup,
    aggregate,
    annualized_volatility,
    classify_risk,
    evaluate_path,
)

__all__ = [
    "RISK_TABLE",
    "calculate_risk_levels",
    "get_risk_parameters",
    "MonteCarloSimulator",
    "PathGenerator",
    "PathOutcome",
    "SimulationSetup",
    "aggregate",
    "annualized_volatility",
    "classify_risk",
    "evaluate_path",
]
