"""Signal source interface for the backtester."""

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Protocol, runtime_checkable

import pandas as pd


class Signal(IntEnum):
    """Trading signal values."""

    SHORT = -1
    FLAT = 0
    LONG = 1


@runtime_checkable
class SignalSource(Protocol):
    """Anything that can produce a directional signal for a bar."""

    def signal(self, data: pd.DataFrame, index: int) -> Signal:
        """Signal for bar ``index`` of ``data`` using only bars up to it."""
        ...


class BaseStrategy(ABC):
    """Abstract base class for vectorized strategies.

    Subclasses implement:
    - generate_signals(): Produce a signal per bar from price data
    - get_parameters(): Return current strategy parameters

    ``signal()`` adapts the vectorized output to the per-bar SignalSource
    interface, computing the whole series once per DataFrame.
    """

    _signals: pd.Series | None = None
    _signals_source: pd.DataFrame | None = None

    @abstractmethod
    def generate_signals(self, data: pd.DataFrame) -> pd.Series:
        """Generate trading signals from OHLC data.

        Args:
            data: DataFrame with columns: open, high, low, close
                  Index should be datetime

        Returns:
            Series of Signal values (+1 long, -1 short, 0 flat)
            Same index as input data
        """

    @abstractmethod
    def get_parameters(self) -> dict:
        """Return current strategy parameters."""

    def signal(self, data: pd.DataFrame, index: int) -> Signal:
        """Signal for a single bar.

        Args:
            data: Full bar DataFrame being simulated
            index: Positional index of the bar

        Returns:
            Signal for that bar
        """
        # Identity check: the cached series belongs to this exact frame
        if self._signals is None or self._signals_source is not data:
            self._signals = self.generate_signals(data)
            self._signals_source = data
        return Signal(int(self._signals.iloc[index]))

    def validate_data(self, data: pd.DataFrame) -> None:
        """Validate input data has required columns.

        Args:
            data: DataFrame to validate

        Raises:
            ValueError: If required columns are missing
        """
        required_columns = {"open", "high", "low", "close"}
        missing = required_columns - set(data.columns.str.lower())
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

    @property
    def name(self) -> str:
        """Strategy name (class name by default)."""
        return self.__class__.__name__

    def __repr__(self) -> str:
        """String representation with parameters."""
        params = self.get_parameters()
        params_str = ", ".join(f"{k}={v}" for k, v in params.items())
        return f"{self.name}({params_str})"
