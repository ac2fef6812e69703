"""Trade lifecycle simulation, metrics and result saving."""

from risk_backtest.backtest.liquidation import (
    LiquidationCheck,
    LiquidationResult,
    MarginLiquidationCheck,
)
from risk_backtest.backtest.metrics import PerformanceMetrics, calculate_metrics, metrics_from_result
from risk_backtest.backtest.position import ActivePosition, settle_pnl
from risk_backtest.backtest.report import ResultSaver
from risk_backtest.backtest.simulator import (
    AdjustmentLedgerEntry,
    SimulationResult,
    SimulatorConfig,
    SizingLedgerEntry,
    TradeLifecycleSimulator,
    run_backtest,
)

__all__ = [
    "TradeLifecycleSimulator",
    "SimulatorConfig",
    "SimulationResult",
    "SizingLedgerEntry",
    "AdjustmentLedgerEntry",
    "run_backtest",
    "ActivePosition",
    "settle_pnl",
    "LiquidationCheck",
    "LiquidationResult",
    "MarginLiquidationCheck",
    "PerformanceMetrics",
    "calculate_metrics",
    "metrics_from_result",
    "ResultSaver",
]
