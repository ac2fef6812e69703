"""Technical indicators for signal generation.

Vectorized implementations using NumPy and Numba.
All functions operate on numpy arrays or pandas Series and are causal:
the value at bar i depends only on bars 0..i.
"""

import numpy as np
import pandas as pd
from numba import jit


@jit(nopython=True, cache=True)
def _ema_numba(values: np.ndarray, period: int) -> np.ndarray:
    """Numba-accelerated EMA calculation, seeded with the first value."""
    alpha = 2.0 / (period + 1)
    result = np.empty_like(values)
    if len(values) == 0:
        return result
    result[0] = values[0]

    for i in range(1, len(values)):
        result[i] = alpha * values[i] + (1 - alpha) * result[i - 1]

    return result


def ema(data: pd.Series | np.ndarray, period: int) -> np.ndarray:
    """Exponential Moving Average.

    Args:
        data: Price series
        period: EMA period

    Returns:
        EMA values
    """
    if period <= 0:
        raise ValueError("period must be positive")
    values = data.to_numpy() if isinstance(data, pd.Series) else np.asarray(data)
    return _ema_numba(values.astype(np.float64), period)


def crossover(series1: np.ndarray, series2: np.ndarray) -> np.ndarray:
    """Detect crossover events (series1 crosses above series2).

    Returns:
        Boolean array, True where crossover occurs
    """
    diff = series1 - series2
    prev_diff = np.roll(diff, 1)

    cross = (prev_diff <= 0) & (diff > 0)
    if len(cross):
        cross[0] = False  # First element can't be a crossover

    return cross


def crossunder(series1: np.ndarray, series2: np.ndarray) -> np.ndarray:
    """Detect crossunder events (series1 crosses below series2).

    Returns:
        Boolean array, True where crossunder occurs
    """
    diff = series1 - series2
    prev_diff = np.roll(diff, 1)

    cross = (prev_diff >= 0) & (diff < 0)
    if len(cross):
        cross[0] = False

    return cross
