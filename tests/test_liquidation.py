"""Tests for the margin liquidation model."""

from datetime import datetime, timezone

import pytest

from risk_backtest.backtest.liquidation import LiquidationCheck, MarginLiquidationCheck
from risk_backtest.backtest.position import ActivePosition
from risk_backtest.data.schemas import PriceBar
from risk_backtest.errors import InvalidConfiguration
from risk_backtest.risk.state import TradeDirection

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_position(direction: TradeDirection) -> ActivePosition:
    return ActivePosition(
        position_id=1,
        entry_index=0,
        entry_time=START,
        entry_price=100.0,
        direction=direction,
        size=1_000.0,
        quantity=10.0,
        risk_amount=200.0,
        risk_percentage=0.02,
        stop_loss=97.5 if direction == TradeDirection.LONG else 102.5,
        take_profit=130.0 if direction == TradeDirection.LONG else 70.0,
    )


def bar(high: float, low: float) -> PriceBar:
    return PriceBar(timestamp=START, open=low, high=high, low=low, close=high)


class TestMarginLiquidationCheck:
    def setup_method(self):
        self.check = MarginLiquidationCheck(leverage=5)

    def test_satisfies_protocol(self):
        assert isinstance(self.check, LiquidationCheck)

    def test_liquidation_prices(self):
        # 1/5 initial margin less 0.5% maintenance
        assert self.check.liquidation_price(100.0, TradeDirection.LONG) == pytest.approx(80.5)
        assert self.check.liquidation_price(100.0, TradeDirection.SHORT) == pytest.approx(119.5)

    def test_long_liquidated_by_low(self):
        result = self.check.check(bar(high=101.0, low=80.0), make_position(TradeDirection.LONG))
        assert result.liquidated
        assert result.liquidation_price == pytest.approx(80.5)

    def test_long_survives_above_threshold(self):
        result = self.check.check(bar(high=101.0, low=81.0), make_position(TradeDirection.LONG))
        assert not result.liquidated
        assert result.liquidation_price is None

    def test_short_liquidated_by_high(self):
        result = self.check.check(bar(high=120.0, low=99.0), make_position(TradeDirection.SHORT))
        assert result.liquidated
        assert result.liquidation_price == pytest.approx(119.5)

    def test_unleveraged_never_liquidated(self):
        check = MarginLiquidationCheck(leverage=1)
        assert check.liquidation_price(100.0, TradeDirection.LONG) is None
        assert not check.check(bar(high=100.0, low=1.0), make_position(TradeDirection.LONG)).liquidated

    def test_custom_maintenance_margin(self):
        check = MarginLiquidationCheck(leverage=10, maintenance_margin_ratio=0.0)
        assert check.liquidation_price(100.0, TradeDirection.LONG) == pytest.approx(90.0)

    @pytest.mark.parametrize("leverage,mmr", [(0.5, 0.005), (5, -0.1), (5, 1.0)])
    def test_invalid_parameters(self, leverage, mmr):
        with pytest.raises(InvalidConfiguration):
            MarginLiquidationCheck(leverage, mmr)
