"""Risk-aware bar-by-bar trade lifecycle simulator."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import pandas as pd

from config.logging_config import get_logger
from risk_backtest.backtest.liquidation import LiquidationCheck, MarginLiquidationCheck
from risk_backtest.backtest.position import ActivePosition, settle_pnl
from risk_backtest.data.schemas import OHLC_COLUMNS, PriceBar, check_bar_ranges
from risk_backtest.errors import DataFormatError, InvalidConfiguration, RunError
from risk_backtest.risk.position_sizer import PositionSizer, SizingDecision, TradeIntent
from risk_backtest.risk.recommendation import Recommendation, RecommendationEngine, RiskAction
from risk_backtest.risk.state import (
    EquitySnapshot,
    ExitReason,
    RiskConfig,
    RiskState,
    Trade,
    TradeDirection,
)
from risk_backtest.risk.stop_loss import StopLossCalculator
from risk_backtest.risk.volatility import average_true_range
from risk_backtest.strategy.base_strategy import Signal, SignalSource

logger = get_logger(__name__)


@dataclass(frozen=True)
class SimulatorConfig:
    """Configuration for a simulation run."""

    market: str = "BTC-PERP"
    timeframe: str = "15m"
    leverage: float = 1.0
    # Take-profit distance as a multiple of margin: entry * (1 +/- target / leverage)
    profit_target: float = 1.5
    atr_period: int = 14
    risk_stats_interval: int = 50  # Bars between risk-state snapshots
    risk: RiskConfig = field(default_factory=RiskConfig)

    def __post_init__(self) -> None:
        """Validate configuration ranges."""
        if self.leverage < 1:
            raise InvalidConfiguration("leverage must be at least 1")
        if self.profit_target <= 0:
            raise InvalidConfiguration("profit_target must be positive")
        if self.atr_period < 1:
            raise InvalidConfiguration("atr_period must be at least 1")
        if self.risk_stats_interval < 1:
            raise InvalidConfiguration("risk_stats_interval must be at least 1")


@dataclass(frozen=True)
class SizingLedgerEntry:
    """Position-sizing decision taken on an entry signal."""

    timestamp: datetime
    signal: int
    direction: TradeDirection
    recommended_size: float
    recommended_capital: float
    risk_percentage: float
    reason: str

    @classmethod
    def from_decision(
        cls, timestamp: datetime, signal: Signal, direction: TradeDirection, decision: SizingDecision
    ) -> "SizingLedgerEntry":
        return cls(
            timestamp=timestamp,
            signal=int(signal),
            direction=direction,
            recommended_size=decision.size,
            recommended_capital=decision.capital,
            risk_percentage=decision.risk_percentage,
            reason=decision.reason,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": pd.Timestamp(self.timestamp).isoformat(),
            "signal": self.signal,
            "direction": self.direction.value,
            "recommended_size": self.recommended_size,
            "recommended_capital": self.recommended_capital,
            "risk_percentage": self.risk_percentage,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class AdjustmentLedgerEntry:
    """Recommendation issued on an entry signal."""

    timestamp: datetime
    recommendation: Recommendation

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": pd.Timestamp(self.timestamp).isoformat(), **self.recommendation.to_dict()}


@dataclass
class SimulationResult:
    """Results from a simulation run.

    ``error`` is set (and everything else empty) when the run could not
    start, e.g. RunError.NO_DATA for an empty bar series.
    """

    config: SimulatorConfig
    error: RunError | None = None
    trades: list[Trade] = field(default_factory=list)
    equity_curve: list[EquitySnapshot] = field(default_factory=list)
    risk_stats: list[dict[str, Any]] = field(default_factory=list)
    position_sizes: list[SizingLedgerEntry] = field(default_factory=list)
    adjustments: list[AdjustmentLedgerEntry] = field(default_factory=list)
    final_equity: float = 0.0
    open_position: ActivePosition | None = None  # Still open when data ended
    risk_state: RiskState | None = None

    @property
    def ok(self) -> bool:
        """True when the run completed."""
        return self.error is None

    def trades_frame(self) -> pd.DataFrame:
        """Closed trades as a DataFrame, one row per trade."""
        if not self.trades:
            return pd.DataFrame()

        df = pd.DataFrame([t.to_dict() for t in self.trades])
        df["entry_time"] = pd.to_datetime(df["entry_time"])
        df["exit_time"] = pd.to_datetime(df["exit_time"])
        return df

    def equity_series(self) -> pd.Series:
        """Mark-to-market equity curve as a Series with a datetime index."""
        if not self.equity_curve:
            return pd.Series(dtype=float, name="equity")

        return pd.Series(
            [s.equity for s in self.equity_curve],
            index=pd.DatetimeIndex([s.timestamp for s in self.equity_curve]),
            name="equity",
        )


class TradeLifecycleSimulator:
    """Bar-by-bar simulator driving the risk engine.

    Per bar, in order:
    1. Feed the trailing volatility window to the risk state
    2. Evaluate exits for the open position (opened on an earlier bar):
       liquidation, stop-loss, take-profit, opposing signal; at most one fires
    3. On a non-flat signal with no open position: size, consult the
       recommendation engine, place the stop and open the position
    4. Record mark-to-market equity (and a risk snapshot every N bars)

    Exits run before entries so a slot freed on a bar can be reused on the
    same bar, and a fresh position is never tested against the range of the
    bar it was opened on.

    A simulator instance holds the state of its most recent run; ``run()``
    resets it, so one instance can be reused sequentially.
    """

    def __init__(
        self,
        config: SimulatorConfig,
        signal_source: SignalSource,
        liquidation_check: LiquidationCheck | None = None,
        recommendation_engine: RecommendationEngine | None = None,
        stop_loss_calculator: StopLossCalculator | None = None,
    ):
        """Initialize simulator.

        Args:
            config: Simulation configuration
            signal_source: Produces a directional signal per bar
            liquidation_check: Liquidation model (None disables liquidations)
            recommendation_engine: Recommendation rules (default engine if None)
            stop_loss_calculator: Stop placement (2 ATR / 2.5% if None)
        """
        self.config = config
        self.signal_source = signal_source
        self.liquidation_check = liquidation_check
        self.recommendation_engine = recommendation_engine or RecommendationEngine()
        self.stop_loss_calculator = stop_loss_calculator or StopLossCalculator()

        # Populated by run()
        self.risk_state: RiskState | None = None
        self.sizer: PositionSizer | None = None
        self.position: ActivePosition | None = None

    def _reset(self, start_time: datetime) -> None:
        risk_config = self.config.risk
        self.risk_state = RiskState(risk_config, start_time=start_time)
        self.sizer = PositionSizer(self.risk_state)

        self.equity = risk_config.initial_capital
        self.peak_equity = risk_config.initial_capital
        self.position = None

        self.trades: list[Trade] = []
        self.equity_curve: list[EquitySnapshot] = []
        self.risk_stats: list[dict[str, Any]] = []
        self.position_sizes: list[SizingLedgerEntry] = []
        self.adjustments: list[AdjustmentLedgerEntry] = []

    def run(self, data: pd.DataFrame | None) -> SimulationResult:
        """Run the simulation over a bar series.

        Args:
            data: OHLC DataFrame with a datetime index, ascending

        Returns:
            SimulationResult; ``error`` is RunError.NO_DATA for missing or
            empty data, in which case no state was touched

        Raises:
            DataFormatError: If OHLC columns are missing or a bar has a high
                below its low
        """
        if data is None or data.empty:
            logger.error("no_data", market=self.config.market, timeframe=self.config.timeframe)
            return SimulationResult(config=self.config, error=RunError.NO_DATA)

        df = data.copy()
        df.columns = df.columns.str.lower()
        missing = [c for c in OHLC_COLUMNS if c not in df.columns]
        if missing:
            raise DataFormatError(f"Missing required columns: {missing}")
        check_bar_ranges(df)

        first_time = pd.Timestamp(df.index[0]).to_pydatetime()
        self._reset(start_time=first_time)

        risk_config = self.config.risk
        logger.info(
            "starting_simulation",
            market=self.config.market,
            timeframe=self.config.timeframe,
            bars=len(df),
            initial_capital=risk_config.initial_capital,
            leverage=self.config.leverage,
            use_volatility_adjustment=risk_config.use_volatility_adjustment,
            use_kelly_criterion=risk_config.use_kelly_criterion,
            use_anti_martingale=risk_config.use_anti_martingale,
        )

        window = risk_config.volatility_window
        last_index = len(df) - 1

        for i, (timestamp, row) in enumerate(df.iterrows()):
            bar = PriceBar.from_row(timestamp, row)

            if i >= window:
                self.risk_state.update_market_data(df.iloc[i - window : i + 1])

            signal = Signal(int(self.signal_source.signal(df, i)))

            if self.position is not None:
                self._handle_open_position(bar, signal)

            if self.position is None and signal != Signal.FLAT:
                self._handle_entry_signal(df, i, bar, signal)

            self._record_equity(bar)

            if i % self.config.risk_stats_interval == 0 or i == last_index:
                self.risk_stats.append(
                    {
                        "timestamp": pd.Timestamp(bar.timestamp).isoformat(),
                        **self.risk_state.get_risk_stats(),
                    }
                )

        logger.info(
            "simulation_complete",
            final_equity=self.equity,
            total_trades=len(self.trades),
            max_drawdown=max((s.drawdown for s in self.equity_curve), default=0.0),
            position_open=self.position is not None,
        )

        return SimulationResult(
            config=self.config,
            trades=list(self.trades),
            equity_curve=list(self.equity_curve),
            risk_stats=list(self.risk_stats),
            position_sizes=list(self.position_sizes),
            adjustments=list(self.adjustments),
            final_equity=self.equity,
            open_position=self.position,
            risk_state=self.risk_state,
        )

    def _handle_entry_signal(
        self, data: pd.DataFrame, index: int, bar: PriceBar, signal: Signal
    ) -> None:
        """Size, vet and open a position for a non-flat signal."""
        direction = TradeDirection.from_signal(signal)
        entry_price = bar.close

        decision = self.sizer.size(
            TradeIntent(entry_time=bar.timestamp, entry_price=entry_price, direction=direction),
            leverage=self.config.leverage,
        )
        self.position_sizes.append(
            SizingLedgerEntry.from_decision(bar.timestamp, signal, direction, decision)
        )

        recommendation = self.recommendation_engine.recommend(self.risk_state)
        self.adjustments.append(AdjustmentLedgerEntry(bar.timestamp, recommendation))

        if not decision.approved or recommendation.action == RiskAction.STOP:
            if decision.approved:
                # Sizing registered the position; the recommendation vetoed it
                self.risk_state.release_position(decision.position_id)
            logger.info(
                "trade_skipped",
                timestamp=bar.timestamp,
                direction=direction.value,
                sizing_reason=decision.reason,
                recommendation=recommendation.action.value,
                reason=recommendation.reason,
            )
            return

        size = decision.size
        if recommendation.action in (RiskAction.REDUCE, RiskAction.INCREASE):
            size *= recommendation.adjustment

        atr = None
        period = self.config.atr_period
        if index >= period:
            # One extra leading bar so every averaged true range has a prior close
            recent = data.iloc[max(index - period - 1, 0) : index]
            atr = average_true_range(recent["high"], recent["low"], recent["close"], period)

        stop_loss = self.stop_loss_calculator.stop_price(entry_price, direction, atr)
        take_profit = entry_price * (
            1 + direction.sign * self.config.profit_target / self.config.leverage
        )

        self.position = ActivePosition(
            position_id=decision.position_id,
            entry_index=index,
            entry_time=bar.timestamp,
            entry_price=entry_price,
            direction=direction,
            size=size,
            quantity=size / entry_price,
            risk_amount=decision.risk_amount,
            risk_percentage=decision.risk_percentage,
            stop_loss=stop_loss,
            take_profit=take_profit,
        )

        logger.info(
            "position_opened",
            timestamp=bar.timestamp,
            position_id=decision.position_id,
            direction=direction.value,
            entry_price=entry_price,
            size=size,
            risk_percentage=decision.risk_percentage,
            stop_loss=stop_loss,
            take_profit=take_profit,
            recommendation=recommendation.action.value,
        )

    def _handle_open_position(self, bar: PriceBar, signal: Signal) -> None:
        """Evaluate exit conditions in priority order; at most one fires."""
        position = self.position

        if self.liquidation_check is not None:
            liquidation = self.liquidation_check.check(bar, position)
            if liquidation.liquidated:
                self._settle(bar, liquidation.liquidation_price, ExitReason.LIQUIDATION)
                return

        if position.stop_hit(bar.high, bar.low):
            self._settle(bar, position.stop_loss, ExitReason.STOP_LOSS)
            return

        if position.target_hit(bar.high, bar.low):
            self._settle(bar, position.take_profit, ExitReason.TAKE_PROFIT)
            return

        if int(signal) == -position.direction.sign:
            self._settle(bar, bar.close, ExitReason.SIGNAL_EXIT)

    def _settle(self, bar: PriceBar, exit_price: float, reason: ExitReason) -> Trade:
        """Close the open position and feed the outcome back into the risk state."""
        position = self.position

        if reason == ExitReason.LIQUIDATION:
            # Full notional lost, no fees
            pnl = -position.entry_value
        else:
            pnl = settle_pnl(
                position.direction,
                position.quantity,
                position.entry_price,
                exit_price,
                self.config.risk.trading_fee,
            )

        trade = Trade(
            position_id=position.position_id,
            entry_time=position.entry_time,
            entry_price=position.entry_price,
            direction=position.direction,
            size=position.size,
            quantity=position.quantity,
            risk_amount=position.risk_amount,
            stop_loss=position.stop_loss,
            exit_time=bar.timestamp,
            exit_price=exit_price,
            exit_reason=reason,
            pnl=pnl,
        )

        self.trades.append(trade)
        self.equity += pnl
        self.risk_state.record_trade(trade)
        self.risk_state.update_equity(self.equity, bar.timestamp)
        self.position = None

        log = logger.warning if reason == ExitReason.LIQUIDATION else logger.info
        log(
            reason.value,
            timestamp=bar.timestamp,
            position_id=trade.position_id,
            direction=trade.direction.value,
            entry_price=trade.entry_price,
            exit_price=trade.exit_price,
            pnl=trade.pnl,
            equity=self.equity,
        )
        return trade

    def _record_equity(self, bar: PriceBar) -> None:
        """Append a mark-to-market equity point for the bar."""
        equity = self.equity
        if self.position is not None:
            equity += self.position.unrealized_pnl(bar.close)

        self.peak_equity = max(self.peak_equity, equity)
        drawdown = min((self.peak_equity - equity) / self.peak_equity, 1.0)

        self.equity_curve.append(
            EquitySnapshot(timestamp=bar.timestamp, equity=equity, drawdown=drawdown)
        )


def run_backtest(
    data: pd.DataFrame | None,
    signal_source: SignalSource,
    config: SimulatorConfig | None = None,
    maintenance_margin_ratio: float | None = None,
) -> SimulationResult:
    """Convenience function to run a simulation with margin liquidations.

    Args:
        data: OHLC DataFrame
        signal_source: Signal source (e.g. a strategy)
        config: Simulation configuration (defaults if None)
        maintenance_margin_ratio: Override for the liquidation model

    Returns:
        SimulationResult; ``error`` is RunError.INVALID_CONFIGURATION when the
        liquidation model rejects its parameters
    """
    config = config or SimulatorConfig()
    try:
        if maintenance_margin_ratio is None:
            liquidation_check = MarginLiquidationCheck(config.leverage)
        else:
            liquidation_check = MarginLiquidationCheck(config.leverage, maintenance_margin_ratio)
    except InvalidConfiguration as e:
        logger.error(
            "invalid_configuration",
            error=str(e),
            leverage=config.leverage,
            maintenance_margin_ratio=maintenance_margin_ratio,
        )
        return SimulationResult(config=config, error=RunError.INVALID_CONFIGURATION)

    simulator = TradeLifecycleSimulator(config, signal_source, liquidation_check=liquidation_check)
    return simulator.run(data)
