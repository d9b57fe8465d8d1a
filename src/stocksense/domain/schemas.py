"""
Data Schemas for StockSense.

This module defines the data contract of the technical-analysis engine.
Everything that crosses a component boundary is a pydantic model:

- Input: Bar, BarSeries (ordered OHLCV observations for one instrument)
- Pattern Matcher output: PatternFinding
- Indicator Calculator output: IndicatorSnapshot, IndicatorReading
- Aggregator output: AnalysisResult

Numeric indicator values use ``Optional[float]`` where ``None`` means the
series was too short to compute the value. A computed ``0.0`` is a real value.
"""

from collections.abc import Sequence
from enum import Enum
from functools import cached_property
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

import pandas as pd
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
)

from stocksense.domain.exceptions import MalformedBarError

# =============================================================================
# ENUMS (The Vocabulary)
# =============================================================================


class PatternType(str, Enum):
    """Directional bias of a candlestick pattern."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class Action(str, Enum):
    """Suggested trading action attached to a finding."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"
    WAIT = "WAIT"


class IndicatorSignal(str, Enum):
    """Interpretation of a single indicator value."""

    BUY = "buy"
    SELL = "sell"
    NEUTRAL = "neutral"


# =============================================================================
# INPUT DOMAIN (Bars)
# =============================================================================


class Bar(BaseModel):
    """
    One OHLCV observation.

    Accepts the short keys emitted by chart scrapers (``time``, ``o``, ``h``,
    ``l``, ``c``, ``v``) as well as the full names. Immutable once built.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: int = Field(
        ...,
        validation_alias=AliasChoices("timestamp", "time"),
        description="Epoch-like bar time (monotonic across a series)",
    )
    open: float = Field(..., validation_alias=AliasChoices("open", "o"), ge=0.0)
    high: float = Field(..., validation_alias=AliasChoices("high", "h"), ge=0.0)
    low: float = Field(..., validation_alias=AliasChoices("low", "l"), ge=0.0)
    close: float = Field(..., validation_alias=AliasChoices("close", "c"), ge=0.0)
    volume: float = Field(
        default=0.0, validation_alias=AliasChoices("volume", "v"), ge=0.0
    )

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def upper_shadow(self) -> float:
        return self.high - max(self.open, self.close)

    @property
    def lower_shadow(self) -> float:
        return min(self.open, self.close) - self.low

    @property
    def body_midpoint(self) -> float:
        return (self.open + self.close) / 2

    @property
    def is_green(self) -> bool:
        return self.close > self.open

    @property
    def is_red(self) -> bool:
        return self.close < self.open


def check_bar(bar: Bar, index: Optional[int] = None) -> None:
    """
    Enforce ``low <= min(open, close) <= max(open, close) <= high``.

    Raises:
        MalformedBarError: If the candle geometry is impossible.
    """
    if bar.low > min(bar.open, bar.close):
        raise MalformedBarError(
            f"low {bar.low} is above the candle body (open={bar.open}, close={bar.close})",
            index,
        )
    if bar.high < max(bar.open, bar.close):
        raise MalformedBarError(
            f"high {bar.high} is below the candle body (open={bar.open}, close={bar.close})",
            index,
        )


def _epoch_ms(values):
    """Convert datetimes (Series or DatetimeIndex) to integer epoch milliseconds."""
    tz = values.dt.tz if isinstance(values, pd.Series) else values.tz
    epoch = pd.Timestamp("1970-01-01", tz=tz)
    return (values - epoch) // pd.Timedelta(milliseconds=1)


class BarSeries(Sequence):
    """
    Ordered, immutable sequence of bars for a single instrument.

    Insertion order is chronological order. Every bar is checked against the
    OHLC invariant and timestamps must be strictly increasing, so the
    indicator and pattern code downstream can assume clean input.
    """

    def __init__(self, bars: Iterable[Bar], symbol: Optional[str] = None):
        self._bars = tuple(bars)
        self.symbol = symbol

        previous: Optional[Bar] = None
        for index, bar in enumerate(self._bars):
            if not isinstance(bar, Bar):
                raise MalformedBarError(
                    f"expected Bar, got {type(bar).__name__}", index
                )
            check_bar(bar, index)
            if previous is not None and bar.timestamp <= previous.timestamp:
                reason = "duplicate" if bar.timestamp == previous.timestamp else "out of order"
                raise MalformedBarError(
                    f"timestamp {bar.timestamp} is {reason} "
                    f"(previous bar at {previous.timestamp})",
                    index,
                )
            previous = bar

    @classmethod
    def from_records(
        cls, records: Iterable[Mapping[str, Any]], symbol: Optional[str] = None
    ) -> "BarSeries":
        """
        Build a series from plain mappings (scraped chart data, JSON history).

        Raises:
            MalformedBarError: If any record fails field validation.
        """
        bars: List[Bar] = []
        for index, record in enumerate(records):
            try:
                bars.append(Bar.model_validate(record))
            except ValidationError as e:
                raise MalformedBarError(
                    f"invalid record: {e.error_count()} validation error(s): "
                    f"{e.errors()[0]['msg']}",
                    index,
                ) from e
        return cls(bars, symbol=symbol)

    @classmethod
    def from_dataframe(
        cls, df: pd.DataFrame, symbol: Optional[str] = None
    ) -> "BarSeries":
        """
        Build a series from an OHLCV DataFrame.

        Timestamps come from the first of: a ``timestamp`` (or ``time``) column
        of epoch values, a ``date`` / ``datetime`` column, or a DatetimeIndex.
        Dates are converted to epoch milliseconds.

        Raises:
            MalformedBarError: If a price column is missing, no timestamp
                source exists, or a date column cannot be parsed.
        """
        required = {"open", "high", "low", "close"}
        missing = required - set(df.columns)
        if missing:
            raise MalformedBarError(f"missing columns: {sorted(missing)}")

        frame = df.copy()
        if "timestamp" not in frame.columns:
            date_column = next(
                (c for c in ("date", "datetime") if c in frame.columns), None
            )
            if "time" in frame.columns:
                frame["timestamp"] = frame["time"]
            elif date_column is not None:
                try:
                    dates = pd.to_datetime(frame[date_column], utc=True)
                except (ValueError, TypeError) as e:
                    raise MalformedBarError(
                        f"unparseable {date_column!r} column: {e}"
                    ) from e
                frame["timestamp"] = _epoch_ms(dates)
            elif isinstance(frame.index, pd.DatetimeIndex):
                frame["timestamp"] = _epoch_ms(frame.index)
            else:
                raise MalformedBarError(
                    "no timestamp source: expected a 'timestamp', 'time', 'date' "
                    "or 'datetime' column, or a DatetimeIndex"
                )
        if "volume" not in frame.columns:
            frame["volume"] = 0.0

        columns = ["timestamp", "open", "high", "low", "close", "volume"]
        return cls.from_records(frame[columns].to_dict(orient="records"), symbol=symbol)

    def to_dataframe(self) -> pd.DataFrame:
        """Export bars as a DataFrame with one row per bar."""
        return pd.DataFrame(
            [bar.model_dump() for bar in self._bars],
            columns=["timestamp", "open", "high", "low", "close", "volume"],
        )

    @cached_property
    def _closes(self) -> pd.Series:
        return pd.Series([bar.close for bar in self._bars], dtype="float64")

    @property
    def closes(self) -> pd.Series:
        """Close prices as a float Series, positionally indexed.

        Each access returns a fresh copy; writing to it never reaches the bars
        or later indicator calculations.
        """
        return self._closes.copy()

    @property
    def last(self) -> Optional[Bar]:
        return self._bars[-1] if self._bars else None

    def tail(self, n: int) -> "BarSeries":
        """Return the most recent ``n`` bars as a new series."""
        if n <= 0:
            return BarSeries((), symbol=self.symbol)
        return BarSeries(self._bars[-n:], symbol=self.symbol)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return BarSeries(self._bars[item], symbol=self.symbol)
        return self._bars[item]

    def __len__(self) -> int:
        return len(self._bars)

    def __iter__(self) -> Iterator[Bar]:
        return iter(self._bars)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BarSeries):
            return NotImplemented
        return self._bars == other._bars and self.symbol == other.symbol

    def __hash__(self) -> int:
        return hash((self._bars, self.symbol))

    def __repr__(self) -> str:
        return f"BarSeries(symbol={self.symbol!r}, bars={len(self._bars)})"


# =============================================================================
# PATTERN MATCHER OUTPUT
# =============================================================================


class PatternFinding(BaseModel):
    """A candlestick pattern recognised on the tail of a series."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Pattern identifier (e.g. 'Hammer')")
    type: PatternType = Field(..., description="Directional bias of the pattern")
    confidence: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Self-reported certainty, not a calibrated probability",
    )
    description: str = Field(..., description="Human-readable rationale")
    action: Action = Field(..., description="Suggested action")
    timeframe: Optional[str] = Field(
        default=None,
        description="Optional label for the bar interval (e.g. '1D')",
    )


# =============================================================================
# INDICATOR CALCULATOR OUTPUT
# =============================================================================


class MacdValue(BaseModel):
    """MACD line, signal line and histogram at the latest bar."""

    model_config = ConfigDict(frozen=True)

    macd: float
    signal: float
    histogram: float


class IndicatorSnapshot(BaseModel):
    """
    Indicator values at the latest bar.

    Each field is ``None`` when the series is too short to compute it.
    ``sma`` and ``ema`` map a period to its (possibly absent) value.
    """

    model_config = ConfigDict(frozen=True)

    rsi: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    macd: Optional[MacdValue] = None
    sma: Dict[int, Optional[float]] = Field(default_factory=dict)
    ema: Dict[int, Optional[float]] = Field(default_factory=dict)

    @property
    def ma20(self) -> Optional[float]:
        return self.sma.get(20)

    @property
    def ma50(self) -> Optional[float]:
        return self.sma.get(50)


class IndicatorReading(BaseModel):
    """Interpretation of one indicator value (dashboard row)."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: float
    signal: IndicatorSignal
    description: str


# =============================================================================
# AGGREGATOR DOMAIN
# =============================================================================


class Fundamentals(BaseModel):
    """
    Fundamental data supplied by an external collaborator. All optional.

    Accepts the labels broker pages display ("P/E", "Market Cap", ...) and
    the camelCase keys of stored snapshots.
    """

    model_config = ConfigDict(frozen=True)

    pe: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("pe", "P/E"), description="Price / earnings"
    )
    eps: Optional[float] = Field(default=None, validation_alias=AliasChoices("eps", "EPS"))
    market_cap: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("market_cap", "marketCap", "Market Cap")
    )
    book_value: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("book_value", "bookValue", "Book Value")
    )
    debt_equity: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("debt_equity", "debtEquity", "Debt/Equity"),
    )
    roe: Optional[float] = Field(default=None, validation_alias=AliasChoices("roe", "ROE"))
    revenue: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("revenue", "Revenue")
    )
    profit: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("profit", "Profit")
    )


class AnalysisResult(BaseModel):
    """
    Everything the engine knows about one instrument at one point in time.

    Built per request and never cached by the engine. ``narrative`` is
    ``None`` when no collaborator was supplied; on collaborator failure it
    holds a fixed fallback message and ``narrative_generated`` is False.
    """

    symbol: Optional[str] = None
    timestamp: Optional[int] = Field(
        default=None, description="Timestamp of the latest bar"
    )
    price: Optional[float] = Field(default=None, description="Close of the latest bar")
    patterns: List[PatternFinding] = Field(default_factory=list)
    indicators: IndicatorSnapshot = Field(default_factory=IndicatorSnapshot)
    readings: List[IndicatorReading] = Field(default_factory=list)
    fundamentals: Optional[Fundamentals] = None
    narrative: Optional[str] = None
    narrative_generated: bool = False

    def to_context(self) -> Dict[str, Any]:
        """JSON-compatible context handed to the narrative collaborator."""
        return {
            "symbol": self.symbol,
            "price": self.price,
            "technicals": self.indicators.model_dump(mode="json"),
            "patterns": [p.model_dump(mode="json") for p in self.patterns],
            "readings": [r.model_dump(mode="json") for r in self.readings],
            "fundamentals": (
                self.fundamentals.model_dump(mode="json", exclude_none=True)
                if self.fundamentals
                else {}
            ),
        }
