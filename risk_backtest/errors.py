"""Error taxonomy for the risk-aware backtester."""

from enum import Enum


class RunError(str, Enum):
    """Reason a simulation run did not produce results."""

    NO_DATA = "no_data"
    INVALID_CONFIGURATION = "invalid_configuration"


class InvalidConfiguration(ValueError):
    """Raised when a configuration value is out of range at construction."""


class DataFormatError(ValueError):
    """Raised when a bar file cannot be parsed into OHLC bars."""
