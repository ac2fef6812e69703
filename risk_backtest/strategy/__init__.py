"""Signal sources and technical indicators."""

from risk_backtest.strategy.base_strategy import BaseStrategy, Signal, SignalSource
from risk_backtest.strategy.indicators import crossover, crossunder, ema
from risk_backtest.strategy.momentum_strategy import MomentumStrategy

__all__ = [
    # Base
    "BaseStrategy",
    "Signal",
    "SignalSource",
    # Strategies
    "MomentumStrategy",
    # Indicators
    "ema",
    "crossover",
    "crossunder",
]
