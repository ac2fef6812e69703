"""Liquidation checks for leveraged positions."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from risk_backtest.backtest.position import ActivePosition
from risk_backtest.data.schemas import PriceBar
from risk_backtest.errors import InvalidConfiguration
from risk_backtest.risk.state import TradeDirection

# Hyperliquid-style maintenance margin for major perps
DEFAULT_MAINTENANCE_MARGIN_RATIO = 0.005


@dataclass(frozen=True)
class LiquidationResult:
    """Outcome of a liquidation check for one bar."""

    liquidated: bool
    liquidation_price: float | None = None


NOT_LIQUIDATED = LiquidationResult(liquidated=False)


@runtime_checkable
class LiquidationCheck(Protocol):
    """Decides whether a position is liquidated within a bar."""

    def check(self, bar: PriceBar, position: ActivePosition) -> LiquidationResult: ...


class MarginLiquidationCheck:
    """Isolated-margin liquidation model.

    The position is liquidated once the adverse move consumes the initial
    margin (1 / leverage) less the maintenance margin:
    - Long:  entry * (1 - 1/leverage + mmr), triggered by the bar low
    - Short: entry * (1 + 1/leverage - mmr), triggered by the bar high

    Unleveraged positions are never liquidated.
    """

    def __init__(
        self,
        leverage: float,
        maintenance_margin_ratio: float = DEFAULT_MAINTENANCE_MARGIN_RATIO,
    ):
        if leverage < 1:
            raise InvalidConfiguration("leverage must be at least 1")
        if not 0 <= maintenance_margin_ratio < 1:
            raise InvalidConfiguration("maintenance_margin_ratio must be in [0, 1)")

        self.leverage = leverage
        self.maintenance_margin_ratio = maintenance_margin_ratio

    def liquidation_price(self, entry_price: float, direction: TradeDirection) -> float | None:
        """Price at which a position opened at ``entry_price`` is liquidated."""
        if self.leverage <= 1:
            return None

        buffer = 1 / self.leverage - self.maintenance_margin_ratio
        if direction == TradeDirection.LONG:
            return entry_price * (1 - buffer)
        return entry_price * (1 + buffer)

    def check(self, bar: PriceBar, position: ActivePosition) -> LiquidationResult:
        price = self.liquidation_price(position.entry_price, position.direction)
        if price is None:
            return NOT_LIQUIDATED

        if position.direction == TradeDirection.LONG:
            hit = bar.low <= price
        else:
            hit = bar.high >= price

        if hit:
            return LiquidationResult(liquidated=True, liquidation_price=price)
        return NOT_LIQUIDATED
