"""Momentum/Trend-following signal source using EMA crossover."""

import numpy as np
import pandas as pd

from risk_backtest.strategy.base_strategy import BaseStrategy, Signal
from risk_backtest.strategy.indicators import crossover, crossunder, ema


class MomentumStrategy(BaseStrategy):
    """EMA Crossover Momentum Strategy.

    Generates long signals when fast EMA crosses above slow EMA,
    and short signals when fast EMA crosses below slow EMA.

    Stops, targets and sizing are left to the risk engine; this class only
    decides direction.
    """

    def __init__(
        self,
        fast_period: int = 20,
        slow_period: int = 50,
        trend_filter_period: int | None = None,
        hold_signals: bool = True,
    ):
        """Initialize momentum strategy.

        Args:
            fast_period: Fast EMA period (default: 20)
            slow_period: Slow EMA period (default: 50)
            trend_filter_period: Long-term EMA for trend filter, None to disable
            hold_signals: Keep the last crossover direction until the opposite
                crossover (True) or emit a signal only on the crossover bar (False)
        """
        if fast_period <= 0:
            raise ValueError("fast_period must be positive")
        if fast_period >= slow_period:
            raise ValueError(
                f"fast_period ({fast_period}) must be less than slow_period ({slow_period})"
            )

        self.fast_period = fast_period
        self.slow_period = slow_period
        self.trend_filter_period = trend_filter_period
        self.hold_signals = hold_signals

    def generate_signals(self, data: pd.DataFrame) -> pd.Series:
        """Generate trading signals from OHLC data.

        With trend filter enabled:
        - Only take LONG signals when price > trend EMA
        - Only take SHORT signals when price < trend EMA

        Args:
            data: DataFrame with OHLC columns

        Returns:
            Series of signals (+1, -1, 0)
        """
        self.validate_data(data)

        df = data.copy()
        df.columns = df.columns.str.lower()
        close = df["close"].to_numpy(dtype=np.float64)

        fast_ema = ema(close, self.fast_period)
        slow_ema = ema(close, self.slow_period)

        long_cross = crossover(fast_ema, slow_ema)
        short_cross = crossunder(fast_ema, slow_ema)

        if self.trend_filter_period is not None:
            trend_ema = ema(close, self.trend_filter_period)
            long_cross = long_cross & (close > trend_ema)
            short_cross = short_cross & (close < trend_ema)

        signals = np.zeros(len(close), dtype=np.int8)
        position = Signal.FLAT
        for i in range(len(close)):
            if long_cross[i]:
                position = Signal.LONG
            elif short_cross[i]:
                position = Signal.SHORT
            elif not self.hold_signals:
                position = Signal.FLAT
            signals[i] = position

        return pd.Series(signals, index=data.index, name="signal")

    def get_parameters(self) -> dict:
        """Return strategy parameters."""
        return {
            "fast_period": self.fast_period,
            "slow_period": self.slow_period,
            "trend_filter_period": self.trend_filter_period,
            "hold_signals": self.hold_signals,
        }
