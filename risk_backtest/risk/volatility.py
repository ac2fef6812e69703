"""Volatility measures used by risk sizing and stop placement.

Both helpers operate on plain numpy arrays or pandas Series so they can be
fed directly from a bar DataFrame slice.
"""

import numpy as np
import pandas as pd
from numba import jit


@jit(nopython=True, cache=True)
def _true_range_numba(high: np.ndarray, low: np.ndarray, close: np.ndarray) -> np.ndarray:
    """Numba-accelerated True Range calculation.

    The first bar has no previous close, so its range is high - low.
    """
    n = len(high)
    tr = np.empty(n, dtype=np.float64)
    if n == 0:
        return tr
    tr[0] = high[0] - low[0]

    for i in range(1, n):
        hl = high[i] - low[i]
        hc = abs(high[i] - close[i - 1])
        lc = abs(low[i] - close[i - 1])
        tr[i] = max(hl, hc, lc)

    return tr


def _as_array(values: pd.Series | np.ndarray) -> np.ndarray:
    raw = values.to_numpy() if isinstance(values, pd.Series) else values
    return np.asarray(raw, dtype=np.float64)


def true_range(
    high: pd.Series | np.ndarray,
    low: pd.Series | np.ndarray,
    close: pd.Series | np.ndarray,
) -> np.ndarray:
    """Per-bar True Range: max(high - low, |high - prev close|, |low - prev close|).

    Args:
        high: High prices
        low: Low prices
        close: Close prices

    Returns:
        True Range values, one per bar
    """
    return _true_range_numba(_as_array(high), _as_array(low), _as_array(close))


def average_true_range(
    high: pd.Series | np.ndarray,
    low: pd.Series | np.ndarray,
    close: pd.Series | np.ndarray,
    period: int = 14,
) -> float | None:
    """Simple-average ATR over the trailing ``period`` bars.

    Args:
        high: High prices
        low: Low prices
        close: Close prices
        period: Number of trailing true ranges to average (default: 14)

    Returns:
        ATR value, or None when fewer than ``period`` bars are available
    """
    if period <= 0:
        raise ValueError("period must be positive")

    tr = true_range(high, low, close)
    if len(tr) < period:
        return None

    return float(np.mean(tr[-period:]))


def return_volatility(close: pd.Series | np.ndarray) -> float:
    """Population standard deviation of simple close-to-close returns.

    Args:
        close: Close prices, oldest first

    Returns:
        Standard deviation of returns (0.0 with fewer than two prices)
    """
    prices = _as_array(close)
    if len(prices) < 2:
        return 0.0

    returns = np.diff(prices) / prices[:-1]
    # ddof=0: mean of squared deviations, no sample correction
    return float(np.std(returns))
