"""Risk-Aware Backtester - Main entry point."""

import sys
from pathlib import Path

import click

# Ensure project root is in path
sys.path.insert(0, str(Path(__file__).parent))

from config.logging_config import get_logger, setup_logging
from config.settings import get_settings
from risk_backtest.backtest.metrics import metrics_from_result
from risk_backtest.backtest.report import ResultSaver
from risk_backtest.backtest.simulator import run_backtest
from risk_backtest.data.loader import load_bars, load_market_bars
from risk_backtest.errors import DataFormatError, RunError
from risk_backtest.strategy.momentum_strategy import MomentumStrategy


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """Risk-Aware Backtester - Leveraged Perpetual Futures."""
    pass


@cli.command()
def info() -> None:
    """Show configuration."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_format=settings.log_json)
    logger = get_logger(__name__)

    click.echo("Risk-Aware Backtester Configuration")
    click.echo("=" * 40)
    click.echo(f"Market: {settings.market}")
    click.echo(f"Timeframe: {settings.timeframe}")
    click.echo(f"Leverage: {settings.leverage:g}x")
    click.echo(f"Profit Target: {settings.profit_target:g}x")
    click.echo()
    click.echo("Risk Parameters:")
    click.echo(f"  Initial Capital: ${settings.initial_capital:,.0f}")
    click.echo(f"  Max Risk Per Trade: {settings.max_risk_per_trade:.1%}")
    click.echo(f"  Max Position Size: {settings.max_position_size:.1%}")
    click.echo(f"  Max Drawdown: {settings.max_drawdown:.1%}")
    click.echo(f"  Trading Fee: {settings.trading_fee:.2%}")
    click.echo()
    click.echo("Adaptive Sizing:")
    click.echo(f"  Volatility Adjustment: {settings.use_volatility_adjustment}")
    click.echo(f"  Kelly Criterion: {settings.use_kelly_criterion}")
    click.echo(f"  Anti-Martingale: {settings.use_anti_martingale}")
    click.echo(f"  Pyramiding: {settings.pyramiding} ({settings.pyramiding_levels} levels)")
    click.echo()
    click.echo("Strategy Parameters:")
    click.echo(f"  Fast EMA: {settings.fast_period}")
    click.echo(f"  Slow EMA: {settings.slow_period}")
    click.echo()
    click.echo(f"Data Directory: {settings.data_dir}")

    logger.info("config_displayed", market=settings.market, timeframe=settings.timeframe)


@cli.command()
@click.option("--market", "-m", default=None, help="Market to test on (e.g. BTC-PERP)")
@click.option("--timeframe", "-t", default=None, help="Timeframe to use (e.g. 15m, 1h, 4h)")
@click.option("--leverage", "-l", type=float, default=None, help="Leverage to use")
@click.option("--initial-capital", type=float, default=None, help="Initial capital")
@click.option(
    "--max-risk-per-trade", type=float, default=None, help="Maximum risk per trade (decimal)"
)
@click.option(
    "--max-drawdown",
    type=float,
    default=None,
    help="Maximum drawdown allowed before stopping (decimal)",
)
@click.option(
    "--use-volatility/--no-use-volatility",
    default=None,
    help="Adjust position size based on volatility",
)
@click.option(
    "--use-kelly/--no-use-kelly", default=None, help="Use Kelly Criterion for position sizing"
)
@click.option(
    "--use-anti-martingale/--no-use-anti-martingale",
    default=None,
    help="Increase size after wins, decrease after losses",
)
@click.option(
    "--data",
    "data_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Bar file (CSV/Parquet/JSON); default: <data_dir>/<market>/<market>-<timeframe>.*",
)
@click.option("--fast-period", type=int, default=None, help="Fast EMA period")
@click.option("--slow-period", type=int, default=None, help="Slow EMA period")
@click.option(
    "--save-results/--no-save-results",
    default=True,
    help="Save detailed results to files (default: True)",
)
@click.option(
    "--results-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory for saving results (default: from settings)",
)
def backtest(
    market: str | None,
    timeframe: str | None,
    leverage: float | None,
    initial_capital: float | None,
    max_risk_per_trade: float | None,
    max_drawdown: float | None,
    use_volatility: bool | None,
    use_kelly: bool | None,
    use_anti_martingale: bool | None,
    data_path: Path | None,
    fast_period: int | None,
    slow_period: int | None,
    save_results: bool,
    results_dir: Path | None,
) -> None:
    """Run a risk-aware backtest with the EMA crossover strategy.

    Examples:
        # Defaults from settings / .env
        python main.py backtest

        # 10x leverage with volatility and Kelly sizing
        python main.py backtest --leverage 10 --use-volatility --use-kelly

        # Explicit data file, no result files
        python main.py backtest --data data/BTC-PERP/BTC-PERP-1h.csv --no-save-results
    """
    settings = get_settings()
    setup_logging(
        log_level=settings.log_level, log_dir=settings.log_dir, json_format=settings.log_json
    )
    logger = get_logger(__name__)

    # CLI options override settings; None means "not given"
    risk_overrides = {
        "initial_capital": initial_capital,
        "max_risk_per_trade": max_risk_per_trade,
        "max_drawdown": max_drawdown,
        "use_volatility_adjustment": use_volatility,
        "use_kelly_criterion": use_kelly,
        "use_anti_martingale": use_anti_martingale,
    }
    sim_overrides = {"market": market, "timeframe": timeframe, "leverage": leverage}

    try:
        risk_config = settings.to_risk_config(
            **{k: v for k, v in risk_overrides.items() if v is not None}
        )
        config = settings.to_simulator_config(
            risk=risk_config, **{k: v for k, v in sim_overrides.items() if v is not None}
        )
        strategy = MomentumStrategy(
            fast_period=fast_period or settings.fast_period,
            slow_period=slow_period or settings.slow_period,
        )
    except ValueError as e:  # InvalidConfiguration included
        raise click.BadParameter(str(e)) from e

    click.echo("=" * 60)
    click.echo("RISK-AWARE BACKTEST")
    click.echo("=" * 60)
    click.echo(f"Market: {config.market}, Timeframe: {config.timeframe}")
    click.echo(f"Initial Capital: ${risk_config.initial_capital:,.2f}, Leverage: {config.leverage:g}x")
    click.echo(f"Strategy: {strategy}")
    click.echo()

    try:
        if data_path is not None:
            data = load_bars(data_path)
        else:
            data = load_market_bars(settings.data_dir, config.market, config.timeframe)
    except DataFormatError as e:
        logger.exception("data_load_failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    result = run_backtest(data, strategy, config)
    if result.error == RunError.NO_DATA:
        click.echo(
            f"No data found for {config.market} on {config.timeframe} timeframe", err=True
        )
        sys.exit(1)
    if not result.ok:
        click.echo(f"Error: backtest not run ({result.error.value})", err=True)
        sys.exit(1)

    metrics = metrics_from_result(result)
    click.echo(str(metrics))

    if result.open_position is not None:
        click.echo(
            f"Position still open: {result.open_position.direction.value} "
            f"from {result.open_position.entry_price:,.2f}"
        )

    if save_results:
        saver = ResultSaver(results_dir or settings.results_dir)
        run_dir = saver.save(result, metrics=metrics)
        click.echo(f"Results saved to: {run_dir}")

    logger.info(
        "backtest_finished",
        final_equity=result.final_equity,
        total_trades=metrics.total_trades,
        max_drawdown_pct=metrics.max_drawdown_pct,
    )


if __name__ == "__main__":
    cli()
