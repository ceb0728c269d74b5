"""
CONTRACT 4: Risk Levels and Risk Assessment

RiskLevels come from the deterministic Unified Risk-Level Calculator.
RiskAssessment comes from the Monte Carlo simulator. All percentages are
expressed in percent (1.5 means 1.5%).
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, model_validator

from quantsignal.schemas.market import Direction, Timeframe


class RiskLevel(str, Enum):
    VERY_LOW = "VERY_LOW"
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"


class RiskParameters(BaseModel):
    """Static per-timeframe stop/target table row."""

    model_config = ConfigDict(frozen=True)

    stop_loss_percent: float = Field(..., gt=0)
    take_profit_percent: float = Field(..., gt=0)
    max_risk_percent: float = Field(..., gt=0)

    @property
    def risk_reward_ratio(self) -> float:
        return self.take_profit_percent / self.stop_loss_percent


class RiskLevels(BaseModel):
    """Output of the risk-level calculator, with the recomputed ratio."""

    model_config = ConfigDict(frozen=True)

    entry_price: float = Field(..., gt=0)
    direction: Direction
    timeframe: Timeframe
    stop_loss: float = Field(..., gt=0)
    take_profit: float = Field(..., gt=0)
    risk_reward_ratio: float = Field(..., ge=0)
    risk_percent: float = Field(..., ge=0)
    reward_percent: float = Field(..., ge=0)
    max_risk_percent: float = Field(..., gt=0)


class RiskAssessment(BaseModel):
    """Aggregated Monte Carlo outcome for one signal."""

    model_config = ConfigDict(frozen=True)

    expected_return: float
    volatility: float = Field(..., ge=0)
    var95: float
    max_drawdown: float = Field(..., ge=0)
    win_probability: float = Field(..., ge=0, le=100)
    sharpe_ratio: float
    confidence_interval: tuple[float, float]
    risk_level: RiskLevel
    iterations: int = Field(..., ge=1)

    @model_validator(mode="after")
    def _check_interval(self) -> "RiskAssessment":
        low, high = self.confidence_interval
        if low > high:
            raise ValueError(f"confidence interval inverted: [{low}, {high}]")
        return self
