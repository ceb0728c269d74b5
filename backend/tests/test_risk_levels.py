"""
Tests for the unified risk-level calculator.
"""

import math

import pytest

from quantsignal.schemas.market import Direction, Timeframe
from quantsignal.services.base import (
    InvalidDirectionError,
    InvalidEntryPriceError,
    InvalidParametersError,
    InvalidTimeframeError,
)
from quantsignal.services.risk import RISK_TABLE, calculate_risk_levels, get_risk_parameters


class TestKnownValues:
    def test_long_1h(self):
        levels = calculate_risk_levels(50000, Direction.LONG, Timeframe.H1)
        assert levels.stop_loss == 49600.00
        assert levels.take_profit == 50800.00
        assert levels.risk_reward_ratio == pytest.approx(2.0)
        assert levels.risk_percent == pytest.approx(0.8)
        assert levels.reward_percent == pytest.approx(1.6)
        assert levels.max_risk_percent == 1.5

    def test_short_1h(self):
        levels = calculate_risk_levels(50000, Direction.SHORT, Timeframe.H1)
        assert levels.stop_loss == 50400.00
        assert levels.take_profit == 49200.00
        assert levels.risk_reward_ratio == pytest.approx(2.0)

    def test_neutral_uses_half_the_stop_symmetrically(self):
        levels = calculate_risk_levels(50000, Direction.NEUTRAL, Timeframe.H1)
        assert levels.stop_loss == 49800.00
        assert levels.take_profit == 50200.00
        assert levels.risk_reward_ratio == pytest.approx(1.0)

    def test_custom_risk_reward(self):
        levels = calculate_risk_levels(100, "LONG", "1d", risk_reward=3.0)
        assert levels.stop_loss == pytest.approx(97.0)
        assert levels.take_profit == pytest.approx(109.0)
        assert levels.risk_reward_ratio == pytest.approx(3.0)

    def test_string_inputs(self):
        levels = calculate_risk_levels(50000, "short", "1h")
        assert levels.direction == Direction.SHORT
        assert levels.timeframe == Timeframe.H1


class TestProperties:
    @pytest.mark.parametrize("timeframe", list(Timeframe))
    @pytest.mark.parametrize("entry", [0.00001234, 0.55, 1.0, 137.25, 50000.0, 1e7])
    def test_levels_on_correct_side(self, timeframe, entry):
        long_ = calculate_risk_levels(entry, Direction.LONG, timeframe)
        assert long_.stop_loss < entry < long_.take_profit

        short = calculate_risk_levels(entry, Direction.SHORT, timeframe)
        assert short.take_profit < entry < short.stop_loss

        assert long_.risk_reward_ratio == pytest.approx(
            RISK_TABLE[timeframe].risk_reward_ratio, rel=1e-9
        )

    def test_idempotent(self):
        first = calculate_risk_levels(64123.45, Direction.SHORT, Timeframe.H4)
        second = calculate_risk_levels(64123.45, Direction.SHORT, Timeframe.H4)
        assert first == second

    def test_table_covers_every_timeframe(self):
        assert set(RISK_TABLE) == set(Timeframe)
        assert get_risk_parameters("12h").stop_loss_percent == 2.25

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            RISK_TABLE[Timeframe.H1] = RISK_TABLE[Timeframe.D1]


class TestInvalidInput:
    @pytest.mark.parametrize("entry", [0, -1, math.nan, math.inf, "abc", None])
    def test_bad_entry(self, entry):
        with pytest.raises(InvalidEntryPriceError):
            calculate_risk_levels(entry, Direction.LONG, Timeframe.H1)

    def test_bad_direction(self):
        with pytest.raises(InvalidDirectionError):
            calculate_risk_levels(100, "SIDEWAYS", Timeframe.H1)

    def test_bad_timeframe(self):
        with pytest.raises(InvalidTimeframeError):
            calculate_risk_levels(100, Direction.LONG, "2h")

    def test_bad_risk_reward(self):
        with pytest.raises(InvalidParametersError):
            calculate_risk_levels(100, Direction.LONG, Timeframe.H1, risk_reward=0)

    def test_short_target_below_zero_is_rejected(self):
        # 8% stop x 20 = 160% target distance on a short
        with pytest.raises(InvalidParametersError) as exc:
            calculate_risk_levels(100, Direction.SHORT, Timeframe.MN1, risk_reward=20)
        assert exc.value.details["risk_reward"] == 20
        # exactly 100% would put the target at zero
        with pytest.raises(InvalidParametersError):
            calculate_risk_levels(100, Direction.SHORT, Timeframe.MN1, risk_reward=12.5)

    def test_long_accepts_large_risk_reward(self):
        levels = calculate_risk_levels(100, Direction.LONG, Timeframe.MN1, risk_reward=20)
        assert levels.take_profit == pytest.approx(260.0)

    def test_invalid_subclasses_share_base(self):
        assert issubclass(InvalidEntryPriceError, InvalidParametersError)
        assert issubclass(InvalidDirectionError, InvalidParametersError)
