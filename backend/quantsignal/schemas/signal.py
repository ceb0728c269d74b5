"""
CONTRACT 3: Confluence Signal

Input: IndicatorSet per timeframe + current price
Output: ConfluenceResult, then Signal once risk levels are attached

A Signal is superseded by the next scheduler cycle, never mutated.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from quantsignal.schemas.indicators import SignalType
from quantsignal.schemas.market import Direction, Timeframe, TradingStyle


class AgreementLevel(str, Enum):
    STRONG = "STRONG"  # >= 80% of weight agrees with the call
    MODERATE = "MODERATE"  # >= 60%
    WEAK = "WEAK"  # >= 40%
    CONFLICTED = "CONFLICTED"


class Vote(BaseModel):
    """One weighted directional vote (an indicator or a whole timeframe)."""

    model_config = ConfigDict(frozen=True)

    source: str
    vote: SignalType
    weight: float = Field(..., ge=0)


class ConfluenceResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    direction: Direction
    confidence: float = Field(..., ge=0, le=100)
    agreement_level: AgreementLevel
    votes: list[Vote]
    reasoning: list[str] = Field(default_factory=list)
    degraded: bool = False
    style: Optional[TradingStyle] = None
    timeframes: list[Timeframe] = Field(default_factory=list)


class Signal(BaseModel):
    """Directional call with confidence and risk levels for one pair."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    timeframe: Timeframe
    direction: Direction
    confidence: float = Field(..., ge=0, le=100)
    entry_price: float = Field(..., gt=0)
    stop_loss: float = Field(..., gt=0)
    take_profit: float = Field(..., gt=0)
    risk_reward_ratio: float = Field(..., ge=0)
    agreement_level: AgreementLevel
    degraded: bool = False
    generated_at: datetime

    @model_validator(mode="after")
    def _check_sides(self) -> "Signal":
        if self.direction == Direction.SHORT:
            ok = self.take_profit < self.entry_price < self.stop_loss
        else:
            ok = self.stop_loss < self.entry_price < self.take_profit
        if not ok:
            raise ValueError(
                f"{self.direction.value} levels on the wrong side of entry: "
                f"SL={self.stop_loss} entry={self.entry_price} TP={self.take_profit}"
            )
        return self
