"""Performance metrics for simulation results."""

import math
from dataclasses import asdict, dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from risk_backtest.backtest.simulator import SimulationResult
from risk_backtest.risk.state import ExitReason

# Crypto perps trade every day of the year
DAYS_PER_YEAR = 365


@dataclass
class PerformanceMetrics:
    """Container for simulation performance metrics."""

    # Returns
    initial_capital: float
    final_equity: float
    total_pnl: float
    total_return_pct: float

    # Risk-adjusted (from daily returns)
    sharpe_ratio: float
    sortino_ratio: float

    # Drawdown
    max_drawdown: float  # Dollars
    max_drawdown_pct: float

    # Trade statistics
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float  # Percent
    profit_factor: float
    avg_trade_pnl: float
    avg_winner: float
    avg_loser: float
    largest_winner: float
    largest_loser: float
    long_trades: int
    short_trades: int
    liquidations: int

    # Per exit reason: {"stop_loss": {"count": 3, "pnl": -41.2}, ...}
    exit_reasons: dict[str, dict[str, float]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert metrics to a formatted report dictionary."""
        return {
            "Final Equity": f"${self.final_equity:,.2f}",
            "Net Profit": f"${self.total_pnl:,.2f}",
            "Total Return (%)": f"{self.total_return_pct:.2f}%",
            "Sharpe Ratio": f"{self.sharpe_ratio:.2f}",
            "Sortino Ratio": f"{self.sortino_ratio:.2f}",
            "Max Drawdown ($)": f"${self.max_drawdown:,.2f}",
            "Max Drawdown (%)": f"{self.max_drawdown_pct:.2f}%",
            "Total Trades": self.total_trades,
            "Win Rate": f"{self.win_rate:.2f}%",
            "Profit Factor": f"{self.profit_factor:.2f}",
            "Avg Trade P&L": f"${self.avg_trade_pnl:,.2f}",
            "Avg Winner": f"${self.avg_winner:,.2f}",
            "Avg Loser": f"${self.avg_loser:,.2f}",
            "Largest Winner": f"${self.largest_winner:,.2f}",
            "Largest Loser": f"${self.largest_loser:,.2f}",
            "Long/Short": f"{self.long_trades}/{self.short_trades}",
            "Liquidations": self.liquidations,
        }

    def to_record(self) -> dict[str, Any]:
        """Raw values for serialization; infinities become None."""
        record = asdict(self)
        for key, value in record.items():
            if isinstance(value, float) and math.isinf(value):
                record[key] = None
        return record

    def __str__(self) -> str:
        """String representation of metrics."""
        lines = ["=" * 50, "RISK-AWARE BACKTEST REPORT", "=" * 50, ""]

        for key, value in self.to_dict().items():
            lines.append(f"{key:.<30} {value}")

        if self.exit_reasons:
            lines.append("")
            for reason, stats in self.exit_reasons.items():
                lines.append(f"{reason:.<30} {int(stats['count'])} (${stats['pnl']:,.2f})")

        lines.append("")
        lines.append("=" * 50)
        return "\n".join(lines)


def calculate_daily_returns(equity_series: pd.Series) -> pd.Series:
    """Daily returns from the last equity point of each calendar day.

    Args:
        equity_series: Equity values with a datetime index

    Returns:
        Series of daily returns (empty when the curve spans a single day)
    """
    if len(equity_series) < 2:
        return pd.Series(dtype=float)

    daily = equity_series.resample("1D").last().dropna()
    return daily.pct_change().dropna()


def calculate_sharpe_ratio(
    returns: pd.Series, risk_free_rate: float = 0.0, periods_per_year: int = DAYS_PER_YEAR
) -> float:
    """Calculate annualized Sharpe Ratio.

    Args:
        returns: Period returns
        risk_free_rate: Annual risk-free rate (default: 0)
        periods_per_year: Periods per year (default: 365 daily periods)

    Returns:
        Sharpe Ratio
    """
    if len(returns) < 2 or returns.std() == 0:
        return 0.0

    rf_period = (1 + risk_free_rate) ** (1 / periods_per_year) - 1
    excess_returns = returns - rf_period
    return float(np.sqrt(periods_per_year) * excess_returns.mean() / returns.std())


def calculate_sortino_ratio(
    returns: pd.Series, risk_free_rate: float = 0.0, periods_per_year: int = DAYS_PER_YEAR
) -> float:
    """Calculate annualized Sortino Ratio (uses downside deviation)."""
    if len(returns) == 0:
        return 0.0

    rf_period = (1 + risk_free_rate) ** (1 / periods_per_year) - 1
    excess_returns = returns - rf_period

    downside = returns[returns < 0]
    if len(downside) == 0:
        return np.inf if excess_returns.mean() > 0 else 0.0

    downside_std = np.sqrt(np.mean(downside**2))
    return float(np.sqrt(periods_per_year) * excess_returns.mean() / downside_std)


def calculate_max_drawdown(equity_series: pd.Series) -> tuple[float, float]:
    """Calculate maximum drawdown.

    Args:
        equity_series: Equity values over time

    Returns:
        Tuple of (max drawdown $, max drawdown %)
    """
    if len(equity_series) == 0:
        return 0.0, 0.0

    running_max = equity_series.expanding().max()
    drawdown = running_max - equity_series
    drawdown_pct = drawdown / running_max * 100

    return float(drawdown.max()), float(drawdown_pct.max())


def calculate_profit_factor(trades_df: pd.DataFrame) -> float:
    """Calculate Profit Factor (gross profit / gross loss).

    Args:
        trades_df: DataFrame with 'pnl' column

    Returns:
        Profit Factor
    """
    if trades_df.empty or "pnl" not in trades_df.columns:
        return 0.0

    gross_profit = trades_df[trades_df["pnl"] > 0]["pnl"].sum()
    gross_loss = abs(trades_df[trades_df["pnl"] < 0]["pnl"].sum())

    if gross_loss == 0:
        return np.inf if gross_profit > 0 else 0.0

    return float(gross_profit / gross_loss)


def exit_reason_breakdown(trades_df: pd.DataFrame) -> dict[str, dict[str, float]]:
    """Trade count and total P&L per exit reason, in ExitReason order."""
    if trades_df.empty:
        return {}

    grouped = trades_df.groupby("exit_reason")["pnl"].agg(["count", "sum"])
    breakdown = {}
    for reason in ExitReason:
        if reason.value in grouped.index:
            row = grouped.loc[reason.value]
            breakdown[reason.value] = {"count": int(row["count"]), "pnl": float(row["sum"])}
    return breakdown


def calculate_metrics(
    equity_series: pd.Series,
    trades_df: pd.DataFrame,
    initial_capital: float,
    final_equity: float | None = None,
    risk_free_rate: float = 0.0,
) -> PerformanceMetrics:
    """Calculate comprehensive performance metrics.

    Args:
        equity_series: Mark-to-market equity curve over time
        trades_df: DataFrame of closed trades (see SimulationResult.trades_frame)
        initial_capital: Starting capital
        final_equity: Realized final equity (last curve point if None)
        risk_free_rate: Annual risk-free rate

    Returns:
        PerformanceMetrics object
    """
    if final_equity is None:
        final_equity = float(equity_series.iloc[-1]) if len(equity_series) > 0 else initial_capital

    total_pnl = float(trades_df["pnl"].sum()) if not trades_df.empty else 0.0
    total_return_pct = (final_equity - initial_capital) / initial_capital * 100

    returns = calculate_daily_returns(equity_series)
    sharpe = calculate_sharpe_ratio(returns, risk_free_rate)
    sortino = calculate_sortino_ratio(returns, risk_free_rate)

    max_dd, max_dd_pct = calculate_max_drawdown(equity_series)

    total_trades = len(trades_df)
    if total_trades > 0:
        winners = trades_df[trades_df["pnl"] > 0]
        losers = trades_df[trades_df["pnl"] < 0]

        winning_trades = len(winners)
        losing_trades = len(losers)
        win_rate = (winning_trades / total_trades) * 100
        profit_factor = calculate_profit_factor(trades_df)

        avg_trade_pnl = float(trades_df["pnl"].mean())
        avg_winner = float(winners["pnl"].mean()) if len(winners) > 0 else 0.0
        avg_loser = float(losers["pnl"].mean()) if len(losers) > 0 else 0.0
        largest_winner = float(trades_df["pnl"].max())
        largest_loser = float(trades_df["pnl"].min())

        long_trades = int((trades_df["direction"] == "long").sum())
        short_trades = int((trades_df["direction"] == "short").sum())
        liquidations = int((trades_df["exit_reason"] == ExitReason.LIQUIDATION.value).sum())
    else:
        winning_trades = 0
        losing_trades = 0
        win_rate = 0.0
        profit_factor = 0.0
        avg_trade_pnl = 0.0
        avg_winner = 0.0
        avg_loser = 0.0
        largest_winner = 0.0
        largest_loser = 0.0
        long_trades = 0
        short_trades = 0
        liquidations = 0

    return PerformanceMetrics(
        initial_capital=initial_capital,
        final_equity=final_equity,
        total_pnl=total_pnl,
        total_return_pct=total_return_pct,
        sharpe_ratio=sharpe,
        sortino_ratio=sortino,
        max_drawdown=max_dd,
        max_drawdown_pct=max_dd_pct,
        total_trades=total_trades,
        winning_trades=winning_trades,
        losing_trades=losing_trades,
        win_rate=win_rate,
        profit_factor=profit_factor,
        avg_trade_pnl=avg_trade_pnl,
        avg_winner=avg_winner,
        avg_loser=avg_loser,
        largest_winner=largest_winner,
        largest_loser=largest_loser,
        long_trades=long_trades,
        short_trades=short_trades,
        liquidations=liquidations,
        exit_reasons=exit_reason_breakdown(trades_df),
    )


def metrics_from_result(result: SimulationResult) -> PerformanceMetrics:
    """Calculate metrics for a completed SimulationResult."""
    return calculate_metrics(
        equity_series=result.equity_series(),
        trades_df=result.trades_frame(),
        initial_capital=result.config.risk.initial_capital,
        final_equity=result.final_equity,
    )
