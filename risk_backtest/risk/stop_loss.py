"""Protective stop placement."""

from dataclasses import dataclass
from enum import Enum

from config.logging_config import get_logger
from risk_backtest.risk.state import TradeDirection

logger = get_logger(__name__)


class StopLossType(str, Enum):
    """Stop-loss strategy type."""

    FIXED_PERCENT = "fixed_percent"
    ATR_BASED = "atr_based"


@dataclass(frozen=True)
class StopLossResult:
    """Result of stop-loss calculation."""

    price: float
    type: StopLossType
    distance: float  # Price distance from entry


class StopLossCalculator:
    """Stateless stop-loss calculator.

    Uses an ATR multiple when an ATR value is available and falls back to a
    fixed percentage of the entry price otherwise.

    Example (long at $100):
    - No ATR: 2.5% distance, stop at $97.50
    - ATR = $1.00: 2 ATR distance, stop at $98.00
    """

    def __init__(self, atr_multiplier: float = 2.0, fallback_percentage: float = 0.025):
        """Initialize stop-loss calculator.

        Args:
            atr_multiplier: ATR units between entry and stop
            fallback_percentage: Stop distance as a fraction of entry when no ATR
        """
        if atr_multiplier <= 0:
            raise ValueError("atr_multiplier must be positive")
        if fallback_percentage <= 0 or fallback_percentage >= 1:
            raise ValueError("fallback_percentage must be between 0 and 1")

        self.atr_multiplier = atr_multiplier
        self.fallback_percentage = fallback_percentage

    def calculate(
        self,
        entry_price: float,
        direction: TradeDirection,
        atr: float | None = None,
    ) -> StopLossResult:
        """Calculate the stop for a new position.

        Args:
            entry_price: Trade entry price
            direction: Trade direction (LONG or SHORT)
            atr: Average True Range at entry (optional)

        Returns:
            StopLossResult with calculated stop price
        """
        if entry_price <= 0:
            raise ValueError("entry_price must be positive")
        if atr is not None and atr < 0:
            raise ValueError("atr cannot be negative")

        # A zero ATR (flat window) would put the stop on the entry price
        if atr:
            distance = atr * self.atr_multiplier
            stop_type = StopLossType.ATR_BASED
        else:
            distance = entry_price * self.fallback_percentage
            stop_type = StopLossType.FIXED_PERCENT

        if direction == TradeDirection.LONG:
            stop_price = entry_price - distance
        else:
            stop_price = entry_price + distance

        logger.debug(
            "stop_loss_calculated",
            entry_price=entry_price,
            atr=atr,
            type=stop_type.value,
            direction=direction.value,
            stop_price=stop_price,
        )

        return StopLossResult(price=stop_price, type=stop_type, distance=distance)

    def stop_price(
        self,
        entry_price: float,
        direction: TradeDirection,
        atr: float | None = None,
    ) -> float:
        """Stop price only; see calculate()."""
        return self.calculate(entry_price, direction, atr).price
