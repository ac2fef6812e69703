"""Tests for risk state bookkeeping."""

from datetime import datetime, timedelta, timezone

import pytest

from risk_backtest.errors import InvalidConfiguration
from risk_backtest.risk.state import (
    TRADE_HISTORY_LIMIT,
    ExitReason,
    RiskConfig,
    RiskState,
    Trade,
    TradeDirection,
)

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_trade(pnl: float, position_id: int = 1) -> Trade:
    return Trade(
        position_id=position_id,
        entry_time=START,
        entry_price=100.0,
        direction=TradeDirection.LONG,
        size=200.0,
        quantity=2.0,
        risk_amount=200.0,
        stop_loss=97.5,
        exit_time=START + timedelta(minutes=15),
        exit_price=100.0 + pnl / 2,
        exit_reason=ExitReason.SIGNAL_EXIT,
        pnl=pnl,
    )


class TestRiskConfig:
    def test_defaults(self):
        config = RiskConfig()
        assert config.initial_capital == 10_000.0
        assert config.max_risk_per_trade == 0.02
        assert config.max_position_size == 0.5
        assert config.max_open_positions == 1
        assert config.max_drawdown == 0.25
        assert config.trading_fee == 0.001
        assert config.pyramiding_levels == 3
        assert config.kelly_fraction == 0.5

    @pytest.mark.parametrize(
        "field,value",
        [
            ("initial_capital", 0),
            ("max_risk_per_trade", -0.01),
            ("max_position_size", 1.5),
            ("max_open_positions", 0),
            ("max_drawdown", 0),
            ("trading_fee", 1.0),
            ("volatility_window", 1),
            ("pyramiding_levels", 0),
            ("loss_multiplier", 0),
            ("kelly_fraction", 0),
        ],
    )
    def test_invalid_values_raise(self, field, value):
        with pytest.raises(InvalidConfiguration, match=field):
            RiskConfig(**{field: value})

    def test_invalid_configuration_is_value_error(self):
        with pytest.raises(ValueError):
            RiskConfig(initial_capital=-1)

    def test_config_is_immutable(self):
        config = RiskConfig()
        with pytest.raises(AttributeError):
            config.max_drawdown = 0.5


class TestUpdateEquity:
    def setup_method(self):
        self.state = RiskState(RiskConfig(), start_time=START)

    def test_initial_snapshot(self):
        assert len(self.state.equity_history) == 1
        snapshot = self.state.equity_history[0]
        assert snapshot.timestamp == START
        assert snapshot.equity == 10_000.0
        assert snapshot.drawdown == 0.0

    def test_high_water_mark_is_monotonic(self):
        marks = []
        for equity in [10_500, 9_000, 11_000, 10_000, 12_000, 500]:
            self.state.update_equity(equity, START)
            marks.append(self.state.high_water_mark)

        assert marks == sorted(marks)
        assert self.state.high_water_mark == 12_000

    def test_drawdown_from_high_water_mark(self):
        self.state.update_equity(10_500, START)
        self.state.update_equity(9_000, START)
        assert self.state.current_drawdown == pytest.approx(1_500 / 10_500)

    def test_drawdown_bounded_even_with_negative_equity(self):
        for equity in [11_000, 5_000, -2_000, 0]:
            self.state.update_equity(equity, START)
            assert 0.0 <= self.state.current_drawdown <= 1.0

    def test_new_high_resets_drawdown(self):
        self.state.update_equity(9_000, START)
        self.state.update_equity(10_100, START)
        assert self.state.current_drawdown == 0.0

    def test_appends_snapshot_with_timestamp(self):
        ts = START + timedelta(hours=1)
        self.state.update_equity(9_500, ts)
        snapshot = self.state.equity_history[-1]
        assert snapshot.timestamp == ts
        assert snapshot.equity == 9_500
        assert snapshot.drawdown == pytest.approx(0.05)

    def test_injected_clock_used_without_timestamp(self):
        fixed = datetime(2030, 5, 5, tzinfo=timezone.utc)
        state = RiskState(RiskConfig(), clock=lambda: fixed)
        state.update_equity(10_100)
        assert state.equity_history[0].timestamp == fixed
        assert state.equity_history[-1].timestamp == fixed


class TestRecordTrade:
    def setup_method(self):
        self.state = RiskState(RiskConfig(), start_time=START)

    def test_win_after_losses_resets_loss_streak(self):
        self.state.record_trade(make_trade(-10))
        self.state.record_trade(make_trade(-10))
        self.state.record_trade(make_trade(25))

        assert self.state.consecutive_losses == 0
        assert self.state.consecutive_wins == 1

    def test_loss_after_wins_resets_win_streak(self):
        self.state.record_trade(make_trade(10))
        self.state.record_trade(make_trade(10))
        self.state.record_trade(make_trade(-5))

        assert self.state.consecutive_wins == 0
        assert self.state.consecutive_losses == 1

    def test_breakeven_trade_keeps_streaks(self):
        self.state.record_trade(make_trade(10))
        self.state.record_trade(make_trade(0))
        assert self.state.consecutive_wins == 1
        assert self.state.consecutive_losses == 0

    def test_win_rate_and_ratio(self):
        for pnl in [30, 10, -10, -30]:
            self.state.record_trade(make_trade(pnl))

        assert self.state.win_rate == pytest.approx(0.5)
        # avg win 20 / avg loss 20
        assert self.state.win_loss_ratio == pytest.approx(1.0)

        self.state.record_trade(make_trade(60))
        assert self.state.win_rate == pytest.approx(3 / 5)
        assert self.state.win_loss_ratio == pytest.approx((100 / 3) / 20)

    def test_ratio_defaults_to_one_without_losses(self):
        self.state.record_trade(make_trade(40))
        assert self.state.win_loss_ratio == 1.0
        assert self.state.win_rate == 1.0

    def test_history_bounded_newest_first(self):
        for i in range(TRADE_HISTORY_LIMIT + 5):
            self.state.record_trade(make_trade(1, position_id=i))

        assert len(self.state.trade_history) == TRADE_HISTORY_LIMIT
        assert self.state.trade_history[0].position_id == TRADE_HISTORY_LIMIT + 4
        assert self.state.trade_history[-1].position_id == 5

    def test_removes_matching_position_by_id(self):
        # Identical entry time and price: only the id tells them apart
        first = self.state.open_position(START, 100.0, TradeDirection.LONG, 200.0, 200.0)
        second = self.state.open_position(START, 100.0, TradeDirection.LONG, 100.0, 100.0, 2)

        self.state.record_trade(make_trade(5, position_id=second.position_id))

        assert [p.position_id for p in self.state.open_positions] == [first.position_id]

    def test_position_ids_are_unique(self):
        ids = {
            self.state.open_position(START, 100.0, TradeDirection.LONG, 1.0, 1.0).position_id
            for _ in range(5)
        }
        assert len(ids) == 5


class TestUpdateMarketData:
    def test_noop_when_disabled(self, bar_factory):
        state = RiskState(RiskConfig(volatility_window=3), start_time=START)
        state.update_market_data(bar_factory([100, 100, 110, 99, 108.9]))
        assert state.price_volatility == 0.0

    def test_noop_without_enough_bars(self, bar_factory):
        config = RiskConfig(use_volatility_adjustment=True, volatility_window=3)
        state = RiskState(config, start_time=START)
        state.update_market_data(bar_factory([100, 110, 99]))
        assert state.price_volatility == 0.0

    def test_population_std_of_trailing_returns(self, bar_factory):
        config = RiskConfig(use_volatility_adjustment=True, volatility_window=3)
        state = RiskState(config, start_time=START)

        # Trailing closes 110, 99, 108.9 -> returns -10%, +10%
        state.update_market_data(bar_factory([100, 100, 110, 99, 108.9]))

        assert state.price_volatility == pytest.approx(0.1)

    def test_none_is_ignored(self):
        config = RiskConfig(use_volatility_adjustment=True)
        state = RiskState(config, start_time=START)
        state.update_market_data(None)
        assert state.price_volatility == 0.0


class TestRiskStats:
    def test_snapshot_fields(self):
        state = RiskState(RiskConfig(), start_time=START)
        stats = state.get_risk_stats()

        assert stats["current_equity"] == 10_000.0
        assert stats["high_water_mark"] == 10_000.0
        assert stats["current_drawdown"] == 0.0
        assert stats["open_positions"] == 0
        assert stats["win_rate"] == 0.5
        assert stats["win_loss_ratio"] == 1.0
        assert stats["price_volatility"] == 0.0

    def test_idempotent(self):
        state = RiskState(RiskConfig(), start_time=START)
        state.update_equity(9_700, START)
        state.record_trade(make_trade(-30))

        assert state.get_risk_stats() == state.get_risk_stats()
        assert len(state.equity_history) == 2
