"""Trade recommendations derived from the current risk state."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from risk_backtest.risk.state import RiskState

# Fraction of max drawdown at which sizes are halved
HIGH_DRAWDOWN_RATIO = 0.7
HIGH_DRAWDOWN_ADJUSTMENT = 0.5
LOSS_STREAK_THRESHOLD = 3
LOSS_STREAK_DECAY = 0.8
HIGH_VOLATILITY = 0.04
HIGH_VOLATILITY_ADJUSTMENT = 0.7
WIN_STREAK_THRESHOLD = 3
WIN_STREAK_MAX_DRAWDOWN = 0.1
WIN_STREAK_STEP = 0.1
MAX_INCREASE = 1.5


class RiskAction(str, Enum):
    """Recommended action for the next trade."""

    STOP = "stop"
    REDUCE = "reduce"
    INCREASE = "increase"
    NORMAL = "normal"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Recommendation:
    """Action, size multiplier and rationale for the next trade."""

    action: RiskAction
    reason: str
    severity: Severity
    adjustment: float | None = None  # Size multiplier; None when trading stops

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "reason": self.reason,
            "adjustment": self.adjustment,
            "severity": self.severity.value,
        }


class RecommendationEngine:
    """Maps a risk state to a trade recommendation.

    Rules are evaluated in strict priority, first match wins:
    1. Drawdown at or above the maximum: stop trading
    2. Drawdown at or above 70% of the maximum: halve size
    3. Three or more consecutive losses: shrink 20% per loss
    4. Trailing volatility above 4% (volatility adjustment on): shrink 30%
    5. Three or more consecutive wins with drawdown under 10%: grow 10% per win, max 50%
    6. Otherwise trade normally

    The engine holds no state; repeated calls on an unchanged risk state
    return equal recommendations.
    """

    def recommend(self, state: RiskState) -> Recommendation:
        """Recommend how to size the next trade.

        Args:
            state: Current risk state (read only)

        Returns:
            Recommendation for the next trade
        """
        config = state.config
        drawdown = state.current_drawdown

        if drawdown >= config.max_drawdown:
            return Recommendation(
                action=RiskAction.STOP,
                reason=f"Max drawdown reached ({drawdown * 100:.2f}%)",
                severity=Severity.HIGH,
            )

        if drawdown >= config.max_drawdown * HIGH_DRAWDOWN_RATIO:
            return Recommendation(
                action=RiskAction.REDUCE,
                reason=f"High drawdown ({drawdown * 100:.2f}%)",
                severity=Severity.MEDIUM,
                adjustment=HIGH_DRAWDOWN_ADJUSTMENT,
            )

        if state.consecutive_losses >= LOSS_STREAK_THRESHOLD:
            return Recommendation(
                action=RiskAction.REDUCE,
                reason=f"{state.consecutive_losses} consecutive losses",
                severity=Severity.MEDIUM,
                adjustment=LOSS_STREAK_DECAY**state.consecutive_losses,
            )

        if config.use_volatility_adjustment and state.price_volatility > HIGH_VOLATILITY:
            return Recommendation(
                action=RiskAction.REDUCE,
                reason=f"High volatility ({state.price_volatility * 100:.2f}%)",
                severity=Severity.MEDIUM,
                adjustment=HIGH_VOLATILITY_ADJUSTMENT,
            )

        if state.consecutive_wins >= WIN_STREAK_THRESHOLD and drawdown < WIN_STREAK_MAX_DRAWDOWN:
            return Recommendation(
                action=RiskAction.INCREASE,
                reason=f"{state.consecutive_wins} consecutive wins with low drawdown",
                severity=Severity.LOW,
                adjustment=min(MAX_INCREASE, 1 + WIN_STREAK_STEP * state.consecutive_wins),
            )

        return Recommendation(
            action=RiskAction.NORMAL,
            reason="Regular trading conditions",
            severity=Severity.LOW,
            adjustment=1.0,
        )
