"""
Confluence weighting configuration.

Indicator weights and the per-style timeframe-importance tables are
enumerated and validated when the config object is built. The engine never
reads ambient configuration: a ConfluenceConfig is passed to it.

Timeframe importance:
    swing  - weight rises with the timeframe up to 1d, then eases off for
             3d/1w/1M whose bars react too slowly for a swing entry.
    scalp  - the mirror image: 5m carries the most weight, and everything
             above 1h fades out.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator

from quantsignal.schemas.indicators import IndicatorKey
from quantsignal.schemas.market import Timeframe, TradingStyle
from quantsignal.services.indicators.calculations import MIN_HISTORY


DEFAULT_INDICATOR_WEIGHTS: dict[IndicatorKey, float] = {
    IndicatorKey.RSI: 0.75,
    IndicatorKey.MACD: 0.85,
    IndicatorKey.BOLLINGER: 0.85,
    IndicatorKey.STOCHASTIC: 0.65,
    IndicatorKey.TREND: 0.95,
}

SWING_TIMEFRAME_WEIGHTS: dict[Timeframe, float] = {
    Timeframe.M1: 0.2,
    Timeframe.M5: 0.3,
    Timeframe.M15: 0.5,
    Timeframe.M30: 0.7,
    Timeframe.H1: 1.0,
    Timeframe.H4: 1.4,
    Timeframe.H12: 1.6,
    Timeframe.D1: 2.0,
    Timeframe.D3: 1.8,
    Timeframe.W1: 1.5,
    Timeframe.MN1: 1.2,
}

SCALP_TIMEFRAME_WEIGHTS: dict[Timeframe, float] = {
    Timeframe.M1: 1.5,
    Timeframe.M5: 2.0,
    Timeframe.M15: 1.8,
    Timeframe.M30: 1.4,
    Timeframe.H1: 1.0,
    Timeframe.H4: 0.7,
    Timeframe.H12: 0.5,
    Timeframe.D1: 0.4,
    Timeframe.D3: 0.3,
    Timeframe.W1: 0.2,
    Timeframe.MN1: 0.1,
}


class ConfluenceConfig(BaseModel):
    """Strongly-typed weighting and threshold configuration."""

    model_config = ConfigDict(frozen=True)

    indicator_weights: dict[IndicatorKey, float] = Field(
        default_factory=lambda: dict(DEFAULT_INDICATOR_WEIGHTS)
    )
    timeframe_weights: dict[TradingStyle, dict[Timeframe, float]] = Field(
        default_factory=lambda: {
            TradingStyle.SWING: dict(SWING_TIMEFRAME_WEIGHTS),
            TradingStyle.SCALP: dict(SCALP_TIMEFRAME_WEIGHTS),
        }
    )

    # Share of total weight the leading side needs, below it the call is NEUTRAL
    min_agreement: float = Field(default=0.45, gt=0, le=1)
    ideal_history: int = Field(default=60, ge=MIN_HISTORY)

    rsi_oversold: float = Field(default=30.0, ge=0, le=100)
    rsi_overbought: float = Field(default=70.0, ge=0, le=100)
    stoch_oversold: float = Field(default=20.0, ge=0, le=100)
    stoch_overbought: float = Field(default=80.0, ge=0, le=100)

    @model_validator(mode="after")
    def _check_tables(self) -> "ConfluenceConfig":
        missing = [k.value for k in IndicatorKey if k not in self.indicator_weights]
        if missing:
            raise ValueError(f"indicator weights missing: {missing}")
        if any(w < 0 for w in self.indicator_weights.values()):
            raise ValueError("indicator weights must be >= 0")
        if sum(self.indicator_weights.values()) <= 0:
            raise ValueError("indicator weights must not all be zero")

        for style in TradingStyle:
            table = self.timeframe_weights.get(style)
            if table is None:
                raise ValueError(f"timeframe weights missing for style {style.value}")
            missing = [t.value for t in Timeframe if t not in table]
            if missing:
                raise ValueError(f"{style.value} timeframe weights missing: {missing}")
            if any(w <= 0 for w in table.values()):
                raise ValueError(f"{style.value} timeframe weights must be > 0")

        if self.rsi_oversold >= self.rsi_overbought:
            raise ValueError("rsi_oversold must be below rsi_overbought")
        if self.stoch_oversold >= self.stoch_overbought:
            raise ValueError("stoch_oversold must be below stoch_overbought")
        return self

    def timeframe_weight(self, style: TradingStyle, timeframe: Timeframe) -> float:
        return self.timeframe_weights[style][timeframe]


DEFAULT_CONFLUENCE_CONFIG = ConfluenceConfig()
