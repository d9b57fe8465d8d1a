"""
Bar History Loader.

Replays stored price history into a validated BarSeries. Supports CSV files
with ``timestamp, open, high, low, close, volume`` columns and JSON files that
hold either a list of bar records or an object with ``symbol``,
``candlestickData`` (or ``bars``) and optional ``fundamentals``.
"""

import json
from pathlib import Path
from typing import Any, Optional, Tuple

import pandas as pd
from loguru import logger

from stocksense.domain.exceptions import MalformedBarError
from stocksense.domain.schemas import BarSeries, Fundamentals
from stocksense.observability import timed

_BAR_KEYS = ("candlestickData", "bars")


def _load_json(path: Path) -> Tuple[list, Optional[str], Optional[dict]]:
    with path.open(encoding="utf-8") as f:
        data: Any = json.load(f)

    if isinstance(data, list):
        return data, None, None

    if isinstance(data, dict):
        for key in _BAR_KEYS:
            if key in data:
                records = data[key]
                if not isinstance(records, list):
                    raise MalformedBarError(
                        f"{path.name}: {key!r} must be a list of bars, "
                        f"got {type(records).__name__}"
                    )
                fundamentals = data.get("fundamentals")
                if fundamentals is not None and not isinstance(fundamentals, dict):
                    raise MalformedBarError(
                        f"{path.name}: 'fundamentals' must be an object, "
                        f"got {type(fundamentals).__name__}"
                    )
                return records, data.get("symbol"), fundamentals
        raise MalformedBarError(
            f"{path.name}: expected one of {list(_BAR_KEYS)} in JSON object"
        )

    raise MalformedBarError(f"{path.name}: unsupported JSON root {type(data).__name__}")


@timed("load_history")
def load_history(
    path: str | Path, symbol: Optional[str] = None
) -> Tuple[BarSeries, Optional[Fundamentals]]:
    """
    Load a bar history file.

    Args:
        path: CSV or JSON file.
        symbol: Overrides the symbol stored in the file.

    Returns:
        Tuple of the validated BarSeries and any fundamentals found in the file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the extension is not .csv or .json.
        MalformedBarError: If any bar is invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Bar history not found: {path}")

    suffix = path.suffix.lower()
    fundamentals = None

    if suffix == ".csv":
        df = pd.read_csv(path)
        df.columns = [str(c).strip().lower() for c in df.columns]
        series = BarSeries.from_dataframe(df, symbol=symbol)
    elif suffix == ".json":
        records, stored_symbol, raw_fundamentals = _load_json(path)
        series = BarSeries.from_records(records, symbol=symbol or stored_symbol)
        if raw_fundamentals:
            fundamentals = Fundamentals.model_validate(raw_fundamentals)
    else:
        raise ValueError(f"Unsupported bar history format: {path.suffix or '(none)'}")

    logger.info(f"Loaded {len(series)} bars for {series.symbol or path.stem} from {path.name}")
    return series, fundamentals


def load_bars(path: str | Path, symbol: Optional[str] = None) -> BarSeries:
    """Load only the BarSeries from a history file."""
    series, _ = load_history(path, symbol=symbol)
    return series
