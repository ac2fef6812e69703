"""Market data loading and schemas."""

from risk_backtest.data.loader import (
    load_bars,
    load_market_bars,
    market_data_path,
    normalize_bars,
)
from risk_backtest.data.schemas import OHLC_COLUMNS, PriceBar, check_bar_ranges

__all__ = [
    "OHLC_COLUMNS",
    "PriceBar",
    "check_bar_ranges",
    "load_bars",
    "load_market_bars",
    "market_data_path",
    "normalize_bars",
]
