"""Open position tracking and fee-adjusted settlement arithmetic."""

from dataclasses import dataclass
from datetime import datetime

from risk_backtest.risk.state import TradeDirection


def settle_pnl(
    direction: TradeDirection,
    quantity: float,
    entry_price: float,
    exit_price: float,
    trading_fee: float,
) -> float:
    """Net P&L of a closed position.

    pnl = directional(exit_value - entry_value) - entry_fee - exit_fee,
    with each fee charged on the notional value of its side.

    Example: long 2 units from 100 to 110 at 0.1% fee
    -> (220 - 200) - 0.20 - 0.22 = 19.58

    Args:
        direction: LONG or SHORT
        quantity: Base-asset quantity
        entry_price: Entry price
        exit_price: Exit price
        trading_fee: Fee rate per side

    Returns:
        Net P&L in quote currency
    """
    entry_value = quantity * entry_price
    exit_value = quantity * exit_price
    gross = (exit_value - entry_value) * direction.sign
    return gross - entry_value * trading_fee - exit_value * trading_fee


@dataclass
class ActivePosition:
    """Position held by the simulator between entry and exit."""

    position_id: int
    entry_index: int
    entry_time: datetime
    entry_price: float
    direction: TradeDirection
    size: float  # Quote notional after recommendation adjustment
    quantity: float
    risk_amount: float
    risk_percentage: float
    stop_loss: float
    take_profit: float

    @property
    def entry_value(self) -> float:
        """Notional value at entry."""
        return self.quantity * self.entry_price

    def unrealized_pnl(self, current_price: float) -> float:
        """Mark-to-market P&L before fees.

        Args:
            current_price: Current market price

        Returns:
            Unrealized P&L in quote currency
        """
        return (current_price - self.entry_price) * self.quantity * self.direction.sign

    def stop_hit(self, high: float, low: float) -> bool:
        """Check if the bar's range reached the stop."""
        if self.direction == TradeDirection.LONG:
            return low <= self.stop_loss
        return high >= self.stop_loss

    def target_hit(self, high: float, low: float) -> bool:
        """Check if the bar's range reached the take-profit target."""
        if self.direction == TradeDirection.LONG:
            return high >= self.take_profit
        return low <= self.take_profit
