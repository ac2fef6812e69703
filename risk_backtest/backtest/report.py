"""Result saving for simulation runs."""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

from config.logging_config import get_logger
from risk_backtest.backtest.metrics import PerformanceMetrics, metrics_from_result
from risk_backtest.backtest.simulator import SimulationResult

logger = get_logger(__name__)

TRADES_FILE = "backtest_trades.json"
EQUITY_CURVE_FILE = "equity_curve.json"
TRADE_STATISTICS_FILE = "trade_statistics.json"
RISK_STATISTICS_FILE = "risk_statistics.json"
POSITION_SIZES_FILE = "position_sizes.json"
RISK_ADJUSTMENTS_FILE = "risk_adjustments.json"
PARAMETERS_FILE = "parameters.json"


class ResultSaver:
    """Saves simulation results to JSON files for analysis.

    Output is deterministic: identical results produce byte-identical files
    (keys sorted, timestamps taken from bars, no wall-clock run ids).
    """

    def __init__(self, results_dir: str | Path = "results/backtests"):
        """Initialize result saver.

        Args:
            results_dir: Base directory for saving results
        """
        self.results_dir = Path(results_dir)

    def save(
        self,
        result: SimulationResult,
        run_id: str | None = None,
        metrics: PerformanceMetrics | None = None,
    ) -> Path:
        """Save all simulation results to files.

        Args:
            result: Completed SimulationResult
            run_id: Run directory name (``<market>_<timeframe>`` if None)
            metrics: Precomputed metrics (calculated from the result if None)

        Returns:
            Path to the results directory
        """
        if not result.ok:
            raise ValueError(f"Cannot save a failed run: {result.error.value}")

        if run_id is None:
            run_id = f"{result.config.market}_{result.config.timeframe}"
        if metrics is None:
            metrics = metrics_from_result(result)

        run_dir = self.results_dir / run_id
        run_dir.mkdir(parents=True, exist_ok=True)

        logger.info("saving_backtest_results", run_id=run_id, directory=str(run_dir))

        files = {
            TRADES_FILE: [t.to_dict() for t in result.trades],
            EQUITY_CURVE_FILE: [s.to_dict() for s in result.equity_curve],
            TRADE_STATISTICS_FILE: metrics.to_record(),
            RISK_STATISTICS_FILE: result.risk_stats,
            POSITION_SIZES_FILE: [p.to_dict() for p in result.position_sizes],
            RISK_ADJUSTMENTS_FILE: [a.to_dict() for a in result.adjustments],
            PARAMETERS_FILE: asdict(result.config),
        }
        for filename, payload in files.items():
            self._write_json(run_dir / filename, payload)

        logger.info("backtest_results_saved", run_id=run_id, files_created=len(files))

        return run_dir

    @staticmethod
    def _write_json(path: Path, payload: Any) -> None:
        with open(path, "w") as f:
            json.dump(payload, f, indent=2, sort_keys=True)
            f.write("\n")

        logger.debug("saved_json", path=str(path))
