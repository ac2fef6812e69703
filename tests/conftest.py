"""Shared fixtures: deterministic bar frames and scripted signal sources."""

import math

import pandas as pd
import pytest

from risk_backtest.strategy.base_strategy import Signal


def build_bars(
    closes,
    highs=None,
    lows=None,
    opens=None,
    start: str = "2024-01-01",
    freq: str = "15min",
) -> pd.DataFrame:
    """Bar frame with a UTC DatetimeIndex; missing OHLC default to the close."""
    closes = [float(c) for c in closes]
    return pd.DataFrame(
        {
            "open": [float(o) for o in opens] if opens is not None else closes,
            "high": [float(h) for h in highs] if highs is not None else closes,
            "low": [float(lo) for lo in lows] if lows is not None else closes,
            "close": closes,
        },
        index=pd.date_range(start, periods=len(closes), freq=freq, tz="UTC", name="timestamp"),
    )


class ScriptedSignals:
    """Signal source replaying a fixed list; flat beyond its end."""

    def __init__(self, signals):
        self.signals = list(signals)

    def signal(self, data: pd.DataFrame, index: int) -> Signal:
        if index < len(self.signals):
            return Signal(self.signals[index])
        return Signal.FLAT


@pytest.fixture
def bar_factory():
    """Factory for bar frames (see build_bars)."""
    return build_bars


@pytest.fixture
def scripted_signals():
    """Factory for scripted signal sources."""
    return ScriptedSignals


@pytest.fixture
def trending_bars() -> pd.DataFrame:
    """300 oscillating, slowly rising 15m bars."""
    closes = [100 + 10 * math.sin(i / 8) + 0.05 * i for i in range(300)]
    return build_bars(
        closes,
        highs=[c + 0.5 for c in closes],
        lows=[c - 0.5 for c in closes],
    )
