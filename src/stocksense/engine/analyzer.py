"""
Analysis Aggregator Module.

This module combines the Pattern Matcher and the Indicator Calculator into a
single AnalysisResult, and optionally asks an external narrative collaborator
for free-text insight on top of the structured result.
"""

from typing import Any, Awaitable, Callable, Dict, Optional

from loguru import logger

from stocksense.analysis.indicators import TechnicalIndicators
from stocksense.analysis.patterns import PatternAnalyzer
from stocksense.domain.exceptions import NarrativeUnavailableError
from stocksense.domain.schemas import AnalysisResult, BarSeries, Fundamentals
from stocksense.engine.parameters import AnalysisConfig

NarrativeFn = Callable[[Dict[str, Any]], Awaitable[str]]

NARRATIVE_UNCONFIGURED = "AI insights unavailable. Please configure your Gemini API key."
NARRATIVE_FALLBACK = "Unable to generate insights at this time."


class AnalysisEngine:
    """Orchestrates indicators, patterns and narrative for one instrument."""

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        indicators: Optional[TechnicalIndicators] = None,
        pattern_analyzer: Optional[PatternAnalyzer] = None,
    ):
        """
        Initialize the AnalysisEngine.

        Args:
            config: Threshold, periods and detector switches. Defaults to
                AnalysisConfig().
            indicators: Indicator calculator (dependency injection).
            pattern_analyzer: Pattern matcher (dependency injection). Defaults
                to all detectors minus ``config.disabled_detectors``.
        """
        self.config = config or AnalysisConfig()
        self.indicators = indicators or TechnicalIndicators()
        self.pattern_analyzer = pattern_analyzer or PatternAnalyzer(
            disabled=self.config.disabled_detectors
        )

    def build_result(
        self,
        series: BarSeries,
        fundamentals: Optional[Fundamentals] = None,
    ) -> AnalysisResult:
        """
        Build the structured result. Never raises for short or empty series.

        Findings with confidence at or below the configured threshold are
        discarded.
        """
        cfg = self.config
        patterns = self.pattern_analyzer.check_patterns(
            series,
            min_confidence=cfg.confidence_threshold,
            timeframe=cfg.timeframe,
        )
        snapshot = self.indicators.compute(
            series, rsi_period=cfg.rsi_period, sma_periods=cfg.sma_periods
        )
        last = series.last
        price = last.close if last is not None else None

        logger.debug(
            f"Analysed {series.symbol or 'series'}: {len(series)} bars, "
            f"{len(patterns)} pattern(s)"
        )

        return AnalysisResult(
            symbol=series.symbol,
            timestamp=last.timestamp if last is not None else None,
            price=price,
            patterns=patterns,
            indicators=snapshot,
            readings=self.indicators.interpret(snapshot, price, rsi_period=cfg.rsi_period),
            fundamentals=fundamentals,
        )

    async def analyze(
        self,
        series: BarSeries,
        narrative_fn: Optional[NarrativeFn] = None,
        fundamentals: Optional[Fundamentals] = None,
    ) -> AnalysisResult:
        """
        Build the structured result, then optionally attach a narrative.

        The structured result is complete before the collaborator is awaited,
        so cancellation leaves nothing half-built. Collaborator failures are
        replaced by a fixed fallback message and never propagate.

        Args:
            series: Validated BarSeries.
            narrative_fn: Async ``(context) -> str`` text generator.
            fundamentals: Optional fundamentals to include in the context.

        Returns:
            AnalysisResult: Always returned.
        """
        result = self.build_result(series, fundamentals=fundamentals)
        if narrative_fn is None:
            return result
        return await self._narrate(result, narrative_fn)

    async def _narrate(
        self, result: AnalysisResult, narrative_fn: NarrativeFn
    ) -> AnalysisResult:
        try:
            text = await narrative_fn(result.to_context())
        except NarrativeUnavailableError as e:
            logger.warning(f"Narrative unavailable for {result.symbol}: {e}")
            return result.model_copy(update={"narrative": NARRATIVE_UNCONFIGURED})
        except Exception as e:
            logger.warning(
                f"Narrative generation failed for {result.symbol}: "
                f"{type(e).__name__}: {e}"
            )
            return result.model_copy(update={"narrative": NARRATIVE_FALLBACK})

        if not isinstance(text, str) or not text.strip():
            logger.warning(f"Narrative collaborator returned no text for {result.symbol}")
            return result.model_copy(update={"narrative": NARRATIVE_FALLBACK})

        return result.model_copy(
            update={"narrative": text.strip(), "narrative_generated": True}
        )


async def analyze(
    series: BarSeries,
    narrative_fn: Optional[NarrativeFn] = None,
    fundamentals: Optional[Fundamentals] = None,
    config: Optional[AnalysisConfig] = None,
) -> AnalysisResult:
    """Analyse ``series`` with a fresh AnalysisEngine."""
    return await AnalysisEngine(config=config).analyze(
        series, narrative_fn=narrative_fn, fundamentals=fundamentals
    )
