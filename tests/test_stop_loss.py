"""Tests for stop-loss placement."""

import pytest

from risk_backtest.risk.state import TradeDirection
from risk_backtest.risk.stop_loss import StopLossCalculator, StopLossType


class TestStopLossCalculator:
    def setup_method(self):
        self.calculator = StopLossCalculator()

    def test_long_percentage_fallback(self):
        assert self.calculator.stop_price(100.0, TradeDirection.LONG) == pytest.approx(97.5)

    def test_long_atr_based(self):
        assert self.calculator.stop_price(100.0, TradeDirection.LONG, atr=1.0) == pytest.approx(98.0)

    def test_short_mirrors_long(self):
        assert self.calculator.stop_price(100.0, TradeDirection.SHORT) == pytest.approx(102.5)
        assert self.calculator.stop_price(100.0, TradeDirection.SHORT, atr=1.0) == pytest.approx(
            102.0
        )

    def test_result_details(self):
        result = self.calculator.calculate(200.0, TradeDirection.LONG, atr=3.0)
        assert result.type == StopLossType.ATR_BASED
        assert result.distance == pytest.approx(6.0)
        assert result.price == pytest.approx(194.0)

        result = self.calculator.calculate(200.0, TradeDirection.LONG)
        assert result.type == StopLossType.FIXED_PERCENT
        assert result.distance == pytest.approx(5.0)

    def test_zero_atr_falls_back_to_percentage(self):
        result = self.calculator.calculate(100.0, TradeDirection.LONG, atr=0.0)
        assert result.type == StopLossType.FIXED_PERCENT
        assert result.price == pytest.approx(97.5)

    def test_invalid_inputs(self):
        with pytest.raises(ValueError):
            self.calculator.stop_price(0.0, TradeDirection.LONG)
        with pytest.raises(ValueError):
            self.calculator.stop_price(100.0, TradeDirection.LONG, atr=-1.0)

    def test_custom_parameters(self):
        calculator = StopLossCalculator(atr_multiplier=3.0, fallback_percentage=0.01)
        assert calculator.stop_price(100.0, TradeDirection.LONG) == pytest.approx(99.0)
        assert calculator.stop_price(100.0, TradeDirection.LONG, atr=1.0) == pytest.approx(97.0)

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            StopLossCalculator(atr_multiplier=0)
        with pytest.raises(ValueError):
            StopLossCalculator(fallback_percentage=1.5)
