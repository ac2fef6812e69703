"""Tests for adaptive position sizing."""

from datetime import datetime, timezone

import pytest

from risk_backtest.errors import InvalidConfiguration
from risk_backtest.risk.position_sizer import (
    REASON_MAX_DRAWDOWN,
    REASON_MAX_OPEN_POSITIONS,
    REASON_MAX_PYRAMIDING,
    REASON_STANDARD,
    REASON_ZERO_ALLOCATION,
    PositionSizer,
    TradeIntent,
    kelly_fraction,
)
from risk_backtest.risk.state import RiskConfig, RiskState, TradeDirection
from tests.test_risk_state import make_trade

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def long_intent(price: float = 100.0) -> TradeIntent:
    return TradeIntent(entry_time=START, entry_price=price, direction=TradeDirection.LONG)


def short_intent(price: float = 100.0) -> TradeIntent:
    return TradeIntent(entry_time=START, entry_price=price, direction=TradeDirection.SHORT)


def make_sizer(**config) -> PositionSizer:
    return PositionSizer(RiskState(RiskConfig(**config), start_time=START))


class TestKellyFraction:
    def test_break_even_edge_is_zero(self):
        assert kelly_fraction(0.5, 1.0) == 0.0

    def test_positive_edge(self):
        # (0.6 * 2 - 0.4) / 2 = 0.4, half-Kelly = 0.2
        assert kelly_fraction(0.6, 2.0, 0.5) == pytest.approx(0.2)

    def test_negative_edge_clamped(self):
        assert kelly_fraction(0.3, 1.0) == 0.0

    def test_non_positive_ratio(self):
        assert kelly_fraction(0.9, 0.0) == 0.0


class TestBaseSizing:
    def test_standard_position(self):
        sizer = make_sizer()
        decision = sizer.size(long_intent(), leverage=1)

        assert decision.approved
        assert decision.risk_amount == pytest.approx(200.0)
        assert decision.capital == pytest.approx(200.0)
        assert decision.size == pytest.approx(200.0)
        assert decision.risk_percentage == pytest.approx(0.02)
        assert decision.reason == REASON_STANDARD
        assert decision.pyramid_level == 1

    def test_registers_position_and_sizing_record(self):
        sizer = make_sizer()
        decision = sizer.size(long_intent(), leverage=1)

        positions = sizer.state.open_positions
        assert len(positions) == 1
        assert positions[0].position_id == decision.position_id
        assert positions[0].capital == pytest.approx(200.0)

        assert len(sizer.state.sizing_history) == 1
        record = sizer.state.sizing_history[0]
        assert record.timestamp == START
        assert record.reason == REASON_STANDARD

    def test_leverage_scales_size_not_capital(self):
        decision = make_sizer().size(long_intent(), leverage=5)
        assert decision.capital == pytest.approx(200.0)
        assert decision.size == pytest.approx(1_000.0)

    def test_leverage_below_one_rejected(self):
        with pytest.raises(InvalidConfiguration):
            make_sizer().size(long_intent(), leverage=0.5)

    def test_capped_at_max_position_size(self):
        decision = make_sizer(max_risk_per_trade=0.8, max_position_size=0.5).size(long_intent())
        assert decision.risk_percentage == pytest.approx(0.5)
        assert decision.size == pytest.approx(5_000.0)


class TestRejections:
    def test_max_drawdown_returns_zero(self):
        sizer = make_sizer()
        sizer.state.update_equity(7_500, START)

        decision = sizer.size(long_intent())

        assert decision.size == 0
        assert decision.capital == 0
        assert decision.risk_amount == 0
        assert decision.reason == REASON_MAX_DRAWDOWN
        assert not decision.approved
        assert sizer.state.open_positions == []
        assert sizer.state.sizing_history == []

    def test_max_drawdown_wins_regardless_of_flags(self):
        sizer = make_sizer(
            pyramiding=True,
            use_kelly_criterion=True,
            use_anti_martingale=True,
            use_volatility_adjustment=True,
        )
        sizer.state.update_equity(7_000, START)

        assert sizer.size(long_intent()).size == 0

    def test_max_open_positions(self):
        sizer = make_sizer()
        sizer.size(long_intent())

        decision = sizer.size(short_intent())

        assert decision.size == 0
        assert decision.reason == REASON_MAX_OPEN_POSITIONS
        assert len(sizer.state.open_positions) == 1

    def test_committed_capital_reduces_available(self):
        sizer = make_sizer(max_open_positions=2)
        sizer.size(long_intent())

        decision = sizer.size(long_intent())

        # (10000 - 200) * 0.02
        assert decision.capital == pytest.approx(196.0)

    def test_zero_allocation_registers_nothing(self):
        sizer = make_sizer(use_kelly_criterion=True)
        for pnl in [10, -10] * 5:
            sizer.state.record_trade(make_trade(pnl))

        decision = sizer.size(long_intent())

        assert decision.size == 0
        assert decision.reason == REASON_ZERO_ALLOCATION
        assert sizer.state.open_positions == []
        assert sizer.state.sizing_history == []


class TestAdaptiveFraction:
    def test_volatility_scaling(self):
        sizer = make_sizer(use_volatility_adjustment=True)
        sizer.state.price_volatility = 0.04  # 2x reference volatility

        assert sizer.size(long_intent()).risk_amount == pytest.approx(100.0)

    def test_volatility_scale_is_capped(self):
        sizer = make_sizer(use_volatility_adjustment=True)
        sizer.state.price_volatility = 0.5

        assert sizer.risk_fraction() == pytest.approx(0.01)

    def test_zero_volatility_skips_scaling(self):
        sizer = make_sizer(use_volatility_adjustment=True)
        assert sizer.risk_fraction() == pytest.approx(0.02)

    def test_anti_martingale_win_streak(self):
        sizer = make_sizer(use_anti_martingale=True)
        for _ in range(2):
            sizer.state.record_trade(make_trade(10))

        assert sizer.risk_fraction() == pytest.approx(0.02 * 1.5**2)

    def test_anti_martingale_streak_exponent_capped(self):
        sizer = make_sizer(use_anti_martingale=True)
        for _ in range(5):
            sizer.state.record_trade(make_trade(10))

        assert sizer.risk_fraction() == pytest.approx(0.02 * 1.5**3)

    def test_anti_martingale_loss_streak(self):
        sizer = make_sizer(use_anti_martingale=True)
        for _ in range(2):
            sizer.state.record_trade(make_trade(-10))

        assert sizer.size(long_intent()).risk_amount == pytest.approx(10_000 * 0.02 * 0.49)

    def test_kelly_needs_ten_trades(self):
        sizer = make_sizer(use_kelly_criterion=True)
        for pnl in [10, -10] * 4 + [10]:
            sizer.state.record_trade(make_trade(pnl))

        assert len(sizer.state.trade_history) == 9
        assert sizer.risk_fraction() == pytest.approx(0.02)

    def test_kelly_only_shrinks(self):
        sizer = make_sizer(use_kelly_criterion=True)
        # p = 0.6, b = 2 -> half-Kelly 0.2, larger than 0.02
        for pnl in [20, 20, 20, 20, 20, 20, -10, -10, -10, -10]:
            sizer.state.record_trade(make_trade(pnl))

        assert sizer.risk_fraction() == pytest.approx(0.02)

    def test_kelly_caps_anti_martingale(self):
        sizer = make_sizer(use_kelly_criterion=True, use_anti_martingale=True, kelly_fraction=0.1)
        # p = 0.6, b = 1 -> full Kelly 0.2, tenth-Kelly 0.02; streak would give 0.02 * 1.5^3
        for pnl in [-10, -10, -10, -10, 10, 10, 10, 10, 10, 10]:
            sizer.state.record_trade(make_trade(pnl))

        assert sizer.risk_fraction() == pytest.approx(0.02)


class TestPyramiding:
    def setup_method(self):
        self.sizer = make_sizer(pyramiding=True, pyramiding_levels=3)

    def test_scaled_entries_then_rejection(self):
        first = self.sizer.size(long_intent())
        second = self.sizer.size(long_intent())
        third = self.sizer.size(long_intent())
        fourth = self.sizer.size(long_intent())

        assert first.size == pytest.approx(200.0)
        assert second.size == pytest.approx(200.0 / 2)
        assert third.size == pytest.approx(200.0 / 3)
        assert second.capital == pytest.approx(100.0)
        assert third.risk_percentage == pytest.approx(0.02 / 3)
        assert [first.pyramid_level, second.pyramid_level, third.pyramid_level] == [1, 2, 3]
        assert second.reason == "Pyramiding level 2"

        assert fourth.size == 0
        assert fourth.reason == REASON_MAX_PYRAMIDING
        assert len(self.sizer.state.open_positions) == 3

    def test_identical_entries_get_distinct_ids(self):
        ids = {self.sizer.size(long_intent()).position_id for _ in range(3)}
        assert len(ids) == 3

    def test_levels_counted_per_direction(self):
        for _ in range(3):
            self.sizer.size(long_intent())

        short = self.sizer.size(short_intent())

        assert short.approved
        assert short.pyramid_level == 1
        assert short.size == pytest.approx(200.0)

    def test_sizes_off_full_equity(self):
        self.sizer.size(long_intent())
        second = self.sizer.size(long_intent())
        # No committed-capital deduction: 10000 * 0.02 / 2
        assert second.capital == pytest.approx(100.0)

    def test_risk_amount_not_scaled_by_level(self):
        self.sizer.size(long_intent())
        second = self.sizer.size(long_intent())
        third = self.sizer.size(long_intent())

        assert second.risk_amount == pytest.approx(200.0)
        assert third.risk_amount == pytest.approx(200.0)
        assert second.risk_percentage == pytest.approx(0.01)
        assert third.capital == pytest.approx(200.0 / 3)
