"""Adaptive position sizing on top of the shared risk state."""

from dataclasses import dataclass
from datetime import datetime

from config.logging_config import get_logger
from risk_backtest.errors import InvalidConfiguration
from risk_backtest.risk.state import RiskState, SizingRecord, TradeDirection

logger = get_logger(__name__)

# Volatility level treated as "normal"; higher volatility shrinks risk
REFERENCE_VOLATILITY = 0.02
MAX_VOLATILITY_SCALE = 2.0
# Streak length beyond which anti-martingale stops compounding
MAX_STREAK_EXPONENT = 3
# Closed trades required before the Kelly cap applies
KELLY_MIN_TRADES = 10

REASON_MAX_DRAWDOWN = "Max drawdown reached"
REASON_MAX_OPEN_POSITIONS = "Max open positions reached"
REASON_MAX_PYRAMIDING = "Max pyramiding levels reached"
REASON_ZERO_ALLOCATION = "Zero risk allocation"
REASON_STANDARD = "Standard position"


@dataclass(frozen=True)
class TradeIntent:
    """A prospective entry the sizer is asked to allocate capital to."""

    entry_time: datetime
    entry_price: float
    direction: TradeDirection


@dataclass(frozen=True)
class SizingDecision:
    """Result of a position sizing request."""

    size: float
    capital: float
    risk_amount: float
    reason: str
    risk_percentage: float = 0.0
    pyramid_level: int = 0
    position_id: int | None = None

    @property
    def approved(self) -> bool:
        """True when a position was opened for this decision."""
        return self.position_id is not None


def kelly_fraction(win_rate: float, win_loss_ratio: float, fraction: float = 0.5) -> float:
    """Fractional Kelly criterion.

    Kelly formula: f* = (p * b - q) / b
    where:
    - p = probability of winning (win_rate)
    - q = probability of losing (1 - win_rate)
    - b = average win / average loss (win_loss_ratio)

    A break-even edge (p = 0.5, b = 1) yields 0: no capital is allocated
    without a positive expectation.

    Args:
        win_rate: Historical win rate (0 to 1)
        win_loss_ratio: Average win divided by average absolute loss
        fraction: Kelly fraction (0.5 = half-Kelly)

    Returns:
        Fraction of capital to risk, never negative
    """
    if win_loss_ratio <= 0:
        return 0.0

    full_kelly = (win_rate * win_loss_ratio - (1 - win_rate)) / win_loss_ratio
    return max(0.0, full_kelly) * fraction


class PositionSizer:
    """Risk-based position sizer for leveraged perpetual trading.

    The risk fraction is derived sequentially, each step overwriting the
    previous value:
    - Base: max risk per trade
    - Volatility scaling: less risk when trailing volatility is high
    - Anti-martingale: more risk on win streaks, less on loss streaks
    - Kelly cap: fractional Kelly can only shrink the fraction
    - Hard cap at max position size

    Accepted decisions register an open position in the risk state.
    """

    def __init__(self, state: RiskState):
        """Initialize position sizer.

        Args:
            state: Risk state to read from and register positions in
        """
        self.state = state

    def risk_fraction(self) -> float:
        """Compute the risk fraction from the current state.

        Returns:
            Fraction of available capital to risk on the next trade
        """
        state = self.state
        config = state.config

        fraction = config.max_risk_per_trade

        if config.use_volatility_adjustment and state.price_volatility > 0:
            normalized = min(state.price_volatility / REFERENCE_VOLATILITY, MAX_VOLATILITY_SCALE)
            fraction = fraction / normalized

        if config.use_anti_martingale:
            if state.consecutive_wins > 0:
                fraction *= config.win_multiplier ** min(state.consecutive_wins, MAX_STREAK_EXPONENT)
            elif state.consecutive_losses > 0:
                fraction *= config.loss_multiplier ** min(
                    state.consecutive_losses, MAX_STREAK_EXPONENT
                )

        if config.use_kelly_criterion and len(state.trade_history) >= KELLY_MIN_TRADES:
            kelly = kelly_fraction(state.win_rate, state.win_loss_ratio, config.kelly_fraction)
            fraction = min(fraction, kelly)

        return min(fraction, config.max_position_size)

    def size(self, intent: TradeIntent, leverage: float = 1.0) -> SizingDecision:
        """Size a new position and register it in the risk state.

        Checks, in order (the first failing check rejects the trade):
        1. Drawdown below the maximum
        2. Open position limit (only without pyramiding)
        3. Pyramiding level limit (only with pyramiding)

        Args:
            intent: Entry time, price and direction of the prospective trade
            leverage: Leverage applied to the committed capital (>= 1)

        Returns:
            SizingDecision; rejected decisions have zero size and no position id
        """
        if leverage < 1:
            raise InvalidConfiguration("leverage must be at least 1")

        state = self.state
        config = state.config

        if state.current_drawdown >= config.max_drawdown:
            logger.warning(
                "sizing_rejected",
                reason=REASON_MAX_DRAWDOWN,
                current_drawdown=state.current_drawdown,
                max_drawdown=config.max_drawdown,
            )
            return self._reject(REASON_MAX_DRAWDOWN)

        if len(state.open_positions) >= config.max_open_positions and not config.pyramiding:
            logger.debug(
                "sizing_rejected",
                reason=REASON_MAX_OPEN_POSITIONS,
                open_positions=len(state.open_positions),
            )
            return self._reject(REASON_MAX_OPEN_POSITIONS)

        available_capital = state.current_equity
        if state.open_positions and not config.pyramiding:
            available_capital -= state.committed_capital

        risk_percentage = self.risk_fraction()
        risk_amount = available_capital * risk_percentage
        capital = risk_amount
        size = capital * leverage
        pyramid_level = 1
        reason = REASON_STANDARD

        # Pyramiding always sizes off full equity; the committed-capital
        # deduction above only applies to the single-position mode.
        if config.pyramiding:
            same_direction = sum(
                1 for p in state.open_positions if p.direction == intent.direction
            )
            if same_direction >= config.pyramiding_levels:
                logger.debug(
                    "sizing_rejected",
                    reason=REASON_MAX_PYRAMIDING,
                    direction=intent.direction.value,
                    positions_in_direction=same_direction,
                )
                return self._reject(REASON_MAX_PYRAMIDING)

            pyramid_level = same_direction + 1
            # risk_amount stays the unscaled budget for this entry
            factor = 1 / pyramid_level
            size *= factor
            capital *= factor
            risk_percentage *= factor
            reason = f"Pyramiding level {pyramid_level}"

        if size <= 0:
            logger.debug(
                "sizing_rejected",
                reason=REASON_ZERO_ALLOCATION,
                available_capital=available_capital,
                risk_percentage=risk_percentage,
            )
            return self._reject(REASON_ZERO_ALLOCATION, risk_percentage=risk_percentage)

        position = state.open_position(
            entry_time=intent.entry_time,
            entry_price=intent.entry_price,
            direction=intent.direction,
            size=size,
            capital=capital,
            pyramid_level=pyramid_level,
        )
        state.record_sizing(
            SizingRecord(
                timestamp=intent.entry_time,
                equity=state.current_equity,
                size=size,
                capital=capital,
                risk_percentage=risk_percentage,
                reason=reason,
            )
        )

        logger.debug(
            "position_sized",
            position_id=position.position_id,
            direction=intent.direction.value,
            available_capital=available_capital,
            risk_percentage=risk_percentage,
            capital=capital,
            size=size,
            leverage=leverage,
            pyramid_level=pyramid_level,
        )

        return SizingDecision(
            size=size,
            capital=capital,
            risk_amount=risk_amount,
            reason=reason,
            risk_percentage=risk_percentage,
            pyramid_level=pyramid_level,
            position_id=position.position_id,
        )

    @staticmethod
    def _reject(reason: str, risk_percentage: float = 0.0) -> SizingDecision:
        return SizingDecision(
            size=0.0,
            capital=0.0,
            risk_amount=0.0,
            reason=reason,
            risk_percentage=risk_percentage,
        )
