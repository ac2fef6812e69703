"""Data schemas for market data."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import pandas as pd

from risk_backtest.errors import DataFormatError

# Columns every bar frame carries after normalization
OHLC_COLUMNS = ("open", "high", "low", "close")


@dataclass(frozen=True, slots=True)
class PriceBar:
    """OHLC bar data structure.

    Represents a single candlestick. Bars travel through the simulator as
    rows of a DataFrame; this type is handed to single-bar collaborators
    such as liquidation checks.
    """

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float

    def __post_init__(self) -> None:
        """Validate bar data."""
        if self.high < self.low:
            raise ValueError(f"high ({self.high}) cannot be less than low ({self.low})")

    @classmethod
    def from_row(cls, timestamp: Any, row: pd.Series) -> "PriceBar":
        """Build a bar from a DataFrame row with lowercase OHLC columns."""
        return cls(
            timestamp=pd.Timestamp(timestamp).to_pydatetime(),
            open=float(row["open"]),
            high=float(row["high"]),
            low=float(row["low"]),
            close=float(row["close"]),
        )

    @property
    def range(self) -> float:
        """Price range of the bar."""
        return self.high - self.low


def check_bar_ranges(df: pd.DataFrame) -> None:
    """Raise DataFormatError when any bar has a high below its low."""
    inverted = df["high"] < df["low"]
    if inverted.any():
        first = df.index[inverted.to_numpy().argmax()]
        raise DataFormatError(
            f"{int(inverted.sum())} bar(s) with high below low, first at {first}"
        )
