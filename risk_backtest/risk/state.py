"""Risk state bookkeeping: equity, drawdown, streaks and volatility."""

import itertools
from collections import deque
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import pandas as pd

from config.logging_config import get_logger
from risk_backtest.errors import InvalidConfiguration
from risk_backtest.risk.volatility import return_volatility

logger = get_logger(__name__)

# Closed trades retained for streak, win-rate and Kelly statistics
TRADE_HISTORY_LIMIT = 50


class TradeDirection(str, Enum):
    """Trade direction."""

    LONG = "long"
    SHORT = "short"

    @classmethod
    def from_signal(cls, signal: int) -> "TradeDirection":
        """Map a directional signal (+1 / -1) to a trade direction."""
        if signal > 0:
            return cls.LONG
        if signal < 0:
            return cls.SHORT
        raise ValueError("a flat signal has no trade direction")

    @property
    def sign(self) -> int:
        """+1 for long, -1 for short."""
        return 1 if self is TradeDirection.LONG else -1


class ExitReason(str, Enum):
    """Why a position was closed."""

    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    SIGNAL_EXIT = "signal_exit"
    LIQUIDATION = "liquidation"


@dataclass(frozen=True)
class RiskConfig:
    """Risk configuration, validated once and immutable afterwards.

    Defaults mirror a conservative single-position setup: 2% risk per trade,
    at most half the equity in one position and a 25% drawdown stop.
    """

    initial_capital: float = 10_000.0
    max_risk_per_trade: float = 0.02
    max_position_size: float = 0.5
    max_open_positions: int = 1
    max_drawdown: float = 0.25
    trading_fee: float = 0.001

    use_volatility_adjustment: bool = False
    volatility_window: int = 20

    pyramiding: bool = False
    pyramiding_levels: int = 3

    use_anti_martingale: bool = False
    win_multiplier: float = 1.5
    loss_multiplier: float = 0.7

    use_kelly_criterion: bool = False
    kelly_fraction: float = 0.5  # Half-Kelly

    def __post_init__(self) -> None:
        """Validate configuration ranges."""
        if self.initial_capital <= 0:
            raise InvalidConfiguration("initial_capital must be positive")
        if not 0 < self.max_risk_per_trade <= 1:
            raise InvalidConfiguration("max_risk_per_trade must be between 0 and 1")
        if not 0 < self.max_position_size <= 1:
            raise InvalidConfiguration("max_position_size must be between 0 and 1")
        if self.max_open_positions < 1:
            raise InvalidConfiguration("max_open_positions must be at least 1")
        if not 0 < self.max_drawdown <= 1:
            raise InvalidConfiguration("max_drawdown must be between 0 and 1")
        if not 0 <= self.trading_fee < 1:
            raise InvalidConfiguration("trading_fee must be in [0, 1)")
        if self.volatility_window < 2:
            raise InvalidConfiguration("volatility_window must be at least 2")
        if self.pyramiding_levels < 1:
            raise InvalidConfiguration("pyramiding_levels must be at least 1")
        if self.win_multiplier <= 0 or self.loss_multiplier <= 0:
            raise InvalidConfiguration("win_multiplier and loss_multiplier must be positive")
        if not 0 < self.kelly_fraction <= 1:
            raise InvalidConfiguration("kelly_fraction must be between 0 and 1")


@dataclass(frozen=True)
class OpenPosition:
    """A position the risk state is currently carrying capital for."""

    position_id: int
    entry_time: datetime
    entry_price: float
    direction: TradeDirection
    size: float
    capital: float
    pyramid_level: int = 1


@dataclass(frozen=True)
class Trade:
    """Closed trade record. Never mutated after settlement."""

    position_id: int
    entry_time: datetime
    entry_price: float
    direction: TradeDirection
    size: float
    quantity: float
    risk_amount: float
    stop_loss: float
    exit_time: datetime
    exit_price: float
    exit_reason: ExitReason
    pnl: float  # Net of entry and exit fees

    @property
    def is_winner(self) -> bool:
        """Check if trade was profitable."""
        return self.pnl > 0

    @property
    def entry_value(self) -> float:
        """Notional value at entry."""
        return self.quantity * self.entry_price

    def to_dict(self) -> dict[str, Any]:
        """Serializable representation."""
        record = asdict(self)
        record["entry_time"] = pd.Timestamp(self.entry_time).isoformat()
        record["exit_time"] = pd.Timestamp(self.exit_time).isoformat()
        record["direction"] = self.direction.value
        record["exit_reason"] = self.exit_reason.value
        return record


@dataclass(frozen=True)
class EquitySnapshot:
    """Equity and drawdown at a point in time."""

    timestamp: datetime
    equity: float
    drawdown: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": pd.Timestamp(self.timestamp).isoformat(),
            "equity": self.equity,
            "drawdown": self.drawdown,
        }


@dataclass(frozen=True)
class SizingRecord:
    """One accepted position-sizing decision."""

    timestamp: datetime
    equity: float
    size: float
    capital: float
    risk_percentage: float
    reason: str


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RiskState:
    """Mutable risk bookkeeping owned by a single simulation run.

    Tracks:
    - Equity, high-water mark and current drawdown
    - Open positions (identified by a unique position id)
    - The most recent closed trades, win/loss streaks, win rate and
      win/loss ratio
    - Trailing price volatility

    All mutation goes through the methods below; callers read the public
    attributes but never assign to them.
    """

    def __init__(
        self,
        config: RiskConfig,
        start_time: datetime | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize risk state.

        Args:
            config: Risk configuration
            start_time: Timestamp of the initial equity snapshot (usually the
                first bar); falls back to ``clock`` when omitted
            clock: Time source for snapshots recorded without a timestamp
        """
        self.config = config
        self._clock = clock or _utc_now
        self._position_ids = itertools.count(1)

        self.initial_capital = config.initial_capital
        self.current_equity = config.initial_capital
        self.high_water_mark = config.initial_capital
        self.current_drawdown = 0.0

        self.open_positions: list[OpenPosition] = []
        self.trade_history: deque[Trade] = deque(maxlen=TRADE_HISTORY_LIMIT)
        self.consecutive_wins = 0
        self.consecutive_losses = 0
        self.win_rate = 0.5  # Prior until trades are recorded
        self.win_loss_ratio = 1.0
        self.price_volatility = 0.0

        self.sizing_history: list[SizingRecord] = []
        self.equity_history: list[EquitySnapshot] = [
            EquitySnapshot(
                timestamp=start_time if start_time is not None else self._clock(),
                equity=self.current_equity,
                drawdown=0.0,
            )
        ]

    def update_equity(self, equity: float, timestamp: datetime | None = None) -> float:
        """Set current equity and refresh high-water mark and drawdown.

        Args:
            equity: New account equity
            timestamp: Snapshot timestamp (bar time); the clock is used if None

        Returns:
            Current equity
        """
        self.current_equity = equity

        if equity > self.high_water_mark:
            self.high_water_mark = equity

        # Capped at 1.0: a liquidation can push equity below zero
        self.current_drawdown = min(
            (self.high_water_mark - equity) / self.high_water_mark, 1.0
        )

        self.equity_history.append(
            EquitySnapshot(
                timestamp=timestamp if timestamp is not None else self._clock(),
                equity=self.current_equity,
                drawdown=self.current_drawdown,
            )
        )
        return self.current_equity

    def update_market_data(self, bars: pd.DataFrame | None) -> None:
        """Refresh trailing price volatility from recent bars.

        No-op unless volatility adjustment is enabled and more than
        ``volatility_window`` bars are supplied.

        Args:
            bars: Recent bars with a ``close`` column, oldest first
        """
        window = self.config.volatility_window
        if not self.config.use_volatility_adjustment or bars is None or len(bars) <= window:
            return

        recent = bars["close"].iloc[-window:]
        self.price_volatility = return_volatility(recent)

        logger.debug(
            "volatility_updated",
            window=window,
            price_volatility=self.price_volatility,
        )

    def record_trade(self, trade: Trade) -> None:
        """Feed a closed trade back into streak and win-rate statistics.

        Args:
            trade: Settled trade
        """
        # deque(maxlen) evicts the oldest trade from the right
        self.trade_history.appendleft(trade)

        if trade.pnl > 0:
            self.consecutive_wins += 1
            self.consecutive_losses = 0
        elif trade.pnl < 0:
            self.consecutive_losses += 1
            self.consecutive_wins = 0

        wins = [t.pnl for t in self.trade_history if t.pnl > 0]
        losses = [t.pnl for t in self.trade_history if t.pnl < 0]

        self.win_rate = len(wins) / len(self.trade_history)
        avg_win = sum(wins) / len(wins) if wins else 0.0
        avg_loss = abs(sum(losses) / len(losses)) if losses else 0.0
        self.win_loss_ratio = avg_win / avg_loss if avg_loss > 0 else 1.0

        self.release_position(trade.position_id)

        logger.debug(
            "trade_recorded",
            position_id=trade.position_id,
            pnl=trade.pnl,
            consecutive_wins=self.consecutive_wins,
            consecutive_losses=self.consecutive_losses,
            win_rate=self.win_rate,
            win_loss_ratio=self.win_loss_ratio,
        )

    def open_position(
        self,
        entry_time: datetime,
        entry_price: float,
        direction: TradeDirection,
        size: float,
        capital: float,
        pyramid_level: int = 1,
    ) -> OpenPosition:
        """Register a newly sized position and assign it a unique id."""
        position = OpenPosition(
            position_id=next(self._position_ids),
            entry_time=entry_time,
            entry_price=entry_price,
            direction=direction,
            size=size,
            capital=capital,
            pyramid_level=pyramid_level,
        )
        self.open_positions.append(position)
        return position

    def release_position(self, position_id: int) -> None:
        """Drop an open position without recording a trade."""
        self.open_positions = [p for p in self.open_positions if p.position_id != position_id]

    def record_sizing(self, record: SizingRecord) -> None:
        """Append an accepted sizing decision to the history."""
        self.sizing_history.append(record)

    @property
    def committed_capital(self) -> float:
        """Capital tied up in open positions."""
        return sum(p.capital for p in self.open_positions)

    def get_risk_stats(self) -> dict[str, Any]:
        """Get a snapshot of the current risk state.

        Returns:
            Dictionary with current equity, drawdown, streak and volatility
        """
        return {
            "current_equity": self.current_equity,
            "initial_capital": self.initial_capital,
            "high_water_mark": self.high_water_mark,
            "current_drawdown": self.current_drawdown,
            "max_risk_per_trade": self.config.max_risk_per_trade,
            "open_positions": len(self.open_positions),
            "consecutive_wins": self.consecutive_wins,
            "consecutive_losses": self.consecutive_losses,
            "win_rate": self.win_rate,
            "win_loss_ratio": self.win_loss_ratio,
            "price_volatility": self.price_volatility,
        }
