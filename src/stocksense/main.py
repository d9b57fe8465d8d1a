"""
Command Line Entrypoint.

Loads a stored bar history, runs the analysis engine and prints the result.

Usage:
    stocksense analyze data/RELIANCE.json --timeframe 1D
    stocksense analyze bars.csv --symbol TCS --no-narrative --json
    stocksense detectors
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from stocksense.analysis.patterns import DEFAULT_DETECTORS
from stocksense.config import get_settings
from stocksense.domain.schemas import AnalysisResult, IndicatorSignal, PatternType
from stocksense.engine.analyzer import AnalysisEngine
from stocksense.market.bar_loader import load_history
from stocksense.narrative.gemini import GeminiNarrativeClient
from stocksense.observability import configure_logging, log_execution_time

app = typer.Typer(help="AI-assisted candlestick and indicator analysis.")
stdout = Console()

_TYPE_STYLE = {
    PatternType.BULLISH: "green",
    PatternType.BEARISH: "red",
    PatternType.NEUTRAL: "yellow",
}
_SIGNAL_STYLE = {
    IndicatorSignal.BUY: "green",
    IndicatorSignal.SELL: "red",
    IndicatorSignal.NEUTRAL: "yellow",
}


def _fmt(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:,.2f}"


def render_result(result: AnalysisResult, console: Console = stdout) -> None:
    """Print an AnalysisResult as Rich tables."""
    title = result.symbol or "Instrument"
    console.print(f"[bold cyan]=== {title} @ {_fmt(result.price)} ===[/bold cyan]")

    patterns = Table(title="Patterns")
    patterns.add_column("Pattern")
    patterns.add_column("Type")
    patterns.add_column("Confidence", justify="right")
    patterns.add_column("Action")
    patterns.add_column("Description")
    for p in result.patterns:
        style = _TYPE_STYLE[p.type]
        patterns.add_row(
            p.name,
            f"[{style}]{p.type.value}[/{style}]",
            f"{p.confidence:.0%}",
            p.action.value,
            p.description,
        )
    if result.patterns:
        console.print(patterns)
    else:
        console.print("[dim]No high-confidence patterns on the latest bars.[/dim]")

    indicators = Table(title="Indicators")
    indicators.add_column("Indicator")
    indicators.add_column("Value", justify="right")
    snap = result.indicators
    indicators.add_row("RSI", _fmt(snap.rsi))
    if snap.macd is not None:
        indicators.add_row("MACD", _fmt(snap.macd.macd))
        indicators.add_row("MACD signal", _fmt(snap.macd.signal))
        indicators.add_row("MACD histogram", _fmt(snap.macd.histogram))
    else:
        indicators.add_row("MACD", _fmt(None))
    for period, value in sorted(snap.sma.items()):
        indicators.add_row(f"SMA {period}", _fmt(value))
    console.print(indicators)

    if result.readings:
        readings = Table(title="Signals")
        readings.add_column("Indicator")
        readings.add_column("Signal")
        readings.add_column("Note")
        for r in result.readings:
            style = _SIGNAL_STYLE[r.signal]
            readings.add_row(r.name, f"[{style}]{r.signal.value}[/{style}]", r.description)
        console.print(readings)

    if result.narrative:
        label = "AI Insight" if result.narrative_generated else "AI Insight (unavailable)"
        console.print(f"\n[bold]{label}[/bold]\n{result.narrative}")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Override LOG_LEVEL (DEBUG, INFO, ...)"
    ),
):
    """Configure logging before any command runs."""
    try:
        settings = get_settings()
    except ValidationError as e:
        stdout.print(f"[bold red]Invalid configuration:[/bold red] {e}")
        raise typer.Exit(code=1) from e
    configure_logging(level=log_level or settings.LOG_LEVEL)


@app.command()
def analyze(
    path: Path = typer.Argument(..., help="CSV or JSON bar history"),
    symbol: Optional[str] = typer.Option(None, "--symbol", "-s"),
    threshold: Optional[float] = typer.Option(
        None, "--threshold", min=0.0, max=1.0, help="Override CONFIDENCE_THRESHOLD"
    ),
    timeframe: Optional[str] = typer.Option(None, "--timeframe", help="e.g. 1D, 15m"),
    narrative: Optional[bool] = typer.Option(
        None,
        "--narrative/--no-narrative",
        help="Request an AI insight (defaults to on when GEMINI_API_KEY is set)",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
):
    """Analyse the latest bars of a stored price history."""
    settings = get_settings()

    try:
        config = settings.analysis_config(
            confidence_threshold=threshold, timeframe=timeframe
        )
        series, fundamentals = load_history(path, symbol=symbol)
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        stdout.print(f"[bold red]❌ {e}[/bold red]")
        raise typer.Exit(code=1) from e

    use_narrative = settings.narrative_enabled if narrative is None else narrative
    narrative_fn = GeminiNarrativeClient(settings) if use_narrative else None

    engine = AnalysisEngine(config=config)
    with log_execution_time("analyze", symbol=series.symbol, bars=len(series)):
        result = asyncio.run(
            engine.analyze(series, narrative_fn=narrative_fn, fundamentals=fundamentals)
        )

    if as_json:
        typer.echo(result.model_dump_json(indent=2))
    else:
        render_result(result)


@app.command()
def detectors():
    """List the pattern detectors in evaluation order."""
    table = Table(title="Detectors")
    table.add_column("#", justify="right")
    table.add_column("Pattern")
    table.add_column("Bars", justify="right")
    table.add_column("Confidence", justify="right")
    for i, d in enumerate(DEFAULT_DETECTORS, start=1):
        table.add_row(str(i), d.name, str(d.lookback), f"{d.confidence:.2f}")
    stdout.print(table)


if __name__ == "__main__":
    app()
