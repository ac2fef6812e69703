"""Risk-aware backtesting engine for leveraged perpetual futures."""

__version__ = "0.1.0"
