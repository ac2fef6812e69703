"""Risk management modules for leveraged perpetual backtesting.

This module provides:
- Risk state bookkeeping (equity, drawdown, streaks, volatility)
- Adaptive position sizing (volatility, anti-martingale, Kelly, pyramiding)
- Stop-loss placement (ATR-based with percentage fallback)
- Trade recommendations (stop, reduce, increase, normal)

Usage:
    from risk_backtest.risk import PositionSizer, RiskConfig, RiskState, TradeIntent

    state = RiskState(RiskConfig(initial_capital=10_000, max_risk_per_trade=0.02))
    sizer = PositionSizer(state)

    decision = sizer.size(
        TradeIntent(entry_time=timestamp, entry_price=100.0, direction=TradeDirection.LONG),
        leverage=1,
    )

    if decision.approved:
        # Open with decision.size notional
        pass
"""

from risk_backtest.risk.position_sizer import (
    PositionSizer,
    SizingDecision,
    TradeIntent,
    kelly_fraction,
)
from risk_backtest.risk.recommendation import (
    Recommendation,
    RecommendationEngine,
    RiskAction,
    Severity,
)
from risk_backtest.risk.state import (
    EquitySnapshot,
    ExitReason,
    OpenPosition,
    RiskConfig,
    RiskState,
    SizingRecord,
    Trade,
    TradeDirection,
)
from risk_backtest.risk.stop_loss import StopLossCalculator, StopLossResult, StopLossType
from risk_backtest.risk.volatility import average_true_range, return_volatility, true_range

__all__ = [
    # State
    "RiskConfig",
    "RiskState",
    "OpenPosition",
    "Trade",
    "TradeDirection",
    "ExitReason",
    "EquitySnapshot",
    "SizingRecord",
    # Position sizing
    "PositionSizer",
    "SizingDecision",
    "TradeIntent",
    "kelly_fraction",
    # Recommendations
    "RecommendationEngine",
    "Recommendation",
    "RiskAction",
    "Severity",
    # Stop-loss
    "StopLossCalculator",
    "StopLossResult",
    "StopLossType",
    # Volatility
    "average_true_range",
    "return_volatility",
    "true_range",
]
