"""Bar loading utilities for CSV, Parquet and JSON candle files."""

from pathlib import Path

import pandas as pd
import pyarrow.parquet as pq

from config.logging_config import get_logger
from risk_backtest.data.schemas import OHLC_COLUMNS, check_bar_ranges
from risk_backtest.errors import DataFormatError

logger = get_logger(__name__)

# Candle feeds use short keys (t/o/h/l/c); databento-style exports use ts_event
COLUMN_ALIASES = {
    "t": "timestamp",
    "time": "timestamp",
    "ts_event": "timestamp",
    "date": "timestamp",
    "datetime": "timestamp",
    "o": "open",
    "h": "high",
    "l": "low",
    "c": "close",
    "v": "volume",
}

SUPPORTED_SUFFIXES = (".parquet", ".csv", ".json")


def _parse_timestamps(values: pd.Series) -> pd.DatetimeIndex:
    """Parse ISO strings or epoch milliseconds into a UTC DatetimeIndex."""
    try:
        if pd.api.types.is_numeric_dtype(values):
            parsed = pd.to_datetime(values, unit="ms", utc=True)
        else:
            parsed = pd.to_datetime(values, utc=True)
    except (ValueError, TypeError) as e:
        raise DataFormatError(f"Unparsable timestamps: {e}") from e
    return pd.DatetimeIndex(parsed, name="timestamp")


def normalize_bars(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize a raw candle frame into the simulator's bar layout.

    - Lowercase column names, map short aliases to OHLC names
    - Timestamp column (or existing index) becomes a UTC DatetimeIndex
    - Rows sorted ascending by time, duplicate timestamps dropped (first kept)

    Args:
        df: Raw candle DataFrame

    Returns:
        DataFrame indexed by timestamp with float open/high/low/close columns
        (plus volume when present)

    Raises:
        DataFormatError: If OHLC columns or timestamps are missing/invalid,
            or a bar has a high below its low
    """
    df = df.copy()
    df.columns = [str(c).lower() for c in df.columns]
    df = df.rename(columns={k: v for k, v in COLUMN_ALIASES.items() if k in df.columns})

    missing = [c for c in OHLC_COLUMNS if c not in df.columns]
    if missing:
        raise DataFormatError(f"Missing required columns: {missing}")

    if "timestamp" in df.columns:
        df.index = _parse_timestamps(df.pop("timestamp"))
    elif isinstance(df.index, pd.DatetimeIndex):
        index = df.index if df.index.tz is not None else df.index.tz_localize("UTC")
        df.index = index.rename("timestamp")
    else:
        raise DataFormatError("Bars need a timestamp column or a DatetimeIndex")

    columns = list(OHLC_COLUMNS) + (["volume"] if "volume" in df.columns else [])
    try:
        df = df[columns].astype(float)
    except (ValueError, TypeError) as e:
        raise DataFormatError(f"Non-numeric price data: {e}") from e

    check_bar_ranges(df)

    df = df.sort_index(kind="stable")
    df = df[~df.index.duplicated(keep="first")]
    return df


def load_bars(path: Path | str) -> pd.DataFrame:
    """Load bars from a CSV, Parquet or JSON file.

    JSON files hold an array of candle objects.

    Args:
        path: File to load

    Returns:
        Normalized bar DataFrame (see normalize_bars)

    Raises:
        FileNotFoundError: If the file does not exist
        DataFormatError: If the format is unsupported or the content invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".parquet":
        raw = pq.read_table(path).to_pandas()
    elif suffix == ".csv":
        raw = pd.read_csv(path)
    elif suffix == ".json":
        try:
            raw = pd.read_json(path, orient="records", convert_dates=False)
        except ValueError as e:
            raise DataFormatError(f"Invalid JSON candle file {path}: {e}") from e
    else:
        raise DataFormatError(f"Unsupported file format: {suffix}")

    bars = normalize_bars(raw)
    logger.info("data_loaded", path=str(path), rows=len(bars))
    return bars


def market_data_path(data_dir: Path | str, market: str, timeframe: str) -> Path | None:
    """Resolve ``<data_dir>/<market>/<market>-<timeframe>.<ext>``.

    Parquet is preferred over CSV, CSV over JSON.

    Returns:
        Path to the first existing file, or None
    """
    market_dir = Path(data_dir) / market
    for suffix in SUPPORTED_SUFFIXES:
        candidate = market_dir / f"{market}-{timeframe}{suffix}"
        if candidate.exists():
            return candidate
    return None


def load_market_bars(data_dir: Path | str, market: str, timeframe: str) -> pd.DataFrame | None:
    """Load bars for a market and timeframe from the data directory.

    Args:
        data_dir: Root data directory
        market: Market symbol (e.g. "BTC-PERP")
        timeframe: Bar timeframe (e.g. "15m")

    Returns:
        Bar DataFrame, or None if no file exists for the market
    """
    path = market_data_path(data_dir, market, timeframe)
    if path is None:
        logger.warning(
            "file_not_found",
            data_dir=str(data_dir),
            market=market,
            timeframe=timeframe,
        )
        return None
    return load_bars(path)
