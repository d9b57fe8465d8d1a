"""Pattern analysis module for detecting candlestick patterns."""

from abc import ABC, abstractmethod
from typing import Collection, List, Optional, Sequence

from loguru import logger

from stocksense.domain.schemas import (
    Action,
    Bar,
    BarSeries,
    PatternFinding,
    PatternType,
)


class PatternDetector(ABC):
    """
    One rule-based candlestick detector.

    A detector looks only at the last ``lookback`` bars and returns at most
    one finding. Detectors hold no state between calls.
    """

    name: str = ""
    lookback: int = 1
    confidence: float = 0.0
    description: str = ""

    def detect(self, series: BarSeries) -> Optional[PatternFinding]:
        """Return a finding for the tail of ``series``, or None."""
        if len(series) < self.lookback:
            return None
        return self._detect(series)

    @abstractmethod
    def _detect(self, series: BarSeries) -> Optional[PatternFinding]:
        raise NotImplementedError

    def _finding(self, pattern_type: PatternType, action: Action) -> PatternFinding:
        return PatternFinding(
            name=self.name,
            type=pattern_type,
            confidence=self.confidence,
            description=self.description,
            action=action,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class DojiDetector(PatternDetector):
    """Body under 10% of the range: indecision."""

    name = "Doji"
    confidence = 0.8
    description = (
        "Indecision pattern suggesting potential reversal. Market showing uncertainty."
    )
    BODY_RATIO = 0.1

    def _detect(self, series: BarSeries) -> Optional[PatternFinding]:
        bar = series[-1]
        if bar.range > 0 and bar.body / bar.range < self.BODY_RATIO:
            return self._finding(PatternType.NEUTRAL, Action.WAIT)
        return None


class HammerDetector(PatternDetector):
    """
    Small body, lower shadow over twice the body, upper shadow under half of it.

    Inside a rising run (the last five closes each above the one before, with
    more than five bars available) the hammer reads as continuation and is
    demoted to neutral / WAIT.
    """

    name = "Hammer"
    confidence = 0.75
    description = "Potential reversal signal. Buyers stepping in at lower levels."
    BODY_RATIO = 0.3
    LOWER_SHADOW_RATIO = 2.0
    UPPER_SHADOW_RATIO = 0.5
    TREND_WINDOW = 5

    def _detect(self, series: BarSeries) -> Optional[PatternFinding]:
        bar = series[-1]
        if bar.range <= 0:
            return None
        if not (
            bar.body / bar.range < self.BODY_RATIO
            and bar.lower_shadow > bar.body * self.LOWER_SHADOW_RATIO
            and bar.upper_shadow < bar.body * self.UPPER_SHADOW_RATIO
        ):
            return None

        if self.in_uptrend(series):
            return self._finding(PatternType.NEUTRAL, Action.WAIT)
        return self._finding(PatternType.BULLISH, Action.BUY)

    @classmethod
    def in_uptrend(cls, series: BarSeries) -> bool:
        """True if each of the last five closes is above the previous one."""
        if len(series) <= cls.TREND_WINDOW:
            return False
        window = [bar.close for bar in series[-cls.TREND_WINDOW :]]
        return all(curr > prev for prev, curr in zip(window, window[1:]))


class ShootingStarDetector(PatternDetector):
    """Small body, upper shadow over twice the body, lower shadow under half of it."""

    name = "Shooting Star"
    confidence = 0.7
    description = "Potential top reversal. Selling pressure at higher levels."
    BODY_RATIO = 0.3
    UPPER_SHADOW_RATIO = 2.0
    LOWER_SHADOW_RATIO = 0.5

    def _detect(self, series: BarSeries) -> Optional[PatternFinding]:
        bar = series[-1]
        if (
            bar.body < bar.range * self.BODY_RATIO
            and bar.upper_shadow > bar.body * self.UPPER_SHADOW_RATIO
            and bar.lower_shadow < bar.body * self.LOWER_SHADOW_RATIO
        ):
            return self._finding(PatternType.BEARISH, Action.SELL)
        return None


class _EngulfingDetector(PatternDetector):
    """Current body engulfs the previous opposite-coloured body by 20% or more."""

    lookback = 2
    confidence = 0.85
    BODY_GROWTH = 1.2

    def _detect(self, series: BarSeries) -> Optional[PatternFinding]:
        previous, current = series[-2], series[-1]
        if current.body > previous.body * self.BODY_GROWTH and self._engulfs(
            previous, current
        ):
            return self._emit()
        return None

    @abstractmethod
    def _engulfs(self, previous: Bar, current: Bar) -> bool:
        raise NotImplementedError

    @abstractmethod
    def _emit(self) -> PatternFinding:
        raise NotImplementedError


class BullishEngulfingDetector(_EngulfingDetector):
    name = "Bullish Engulfing"
    description = "Strong reversal signal. Bulls taking control after bearish move."

    def _engulfs(self, previous: Bar, current: Bar) -> bool:
        return (
            previous.is_red
            and current.is_green
            and current.open < previous.close
            and current.close > previous.open
        )

    def _emit(self) -> PatternFinding:
        return self._finding(PatternType.BULLISH, Action.BUY)


class BearishEngulfingDetector(_EngulfingDetector):
    name = "Bearish Engulfing"
    description = "Strong reversal signal. Bears taking control after bullish move."

    def _engulfs(self, previous: Bar, current: Bar) -> bool:
        return (
            previous.is_green
            and current.is_red
            and current.open > previous.close
            and current.close < previous.open
        )

    def _emit(self) -> PatternFinding:
        return self._finding(PatternType.BEARISH, Action.SELL)


class _StarDetector(PatternDetector):
    """Three-candle reversal: trend candle, small-bodied star, counter candle."""

    lookback = 3
    confidence = 0.8
    STAR_BODY_RATIO = 0.3

    def _detect(self, series: BarSeries) -> Optional[PatternFinding]:
        first, star, third = series[-3], series[-2], series[-1]
        if star.body < star.range * self.STAR_BODY_RATIO and self._matches(
            first, third
        ):
            return self._emit()
        return None

    @abstractmethod
    def _matches(self, first: Bar, third: Bar) -> bool:
        raise NotImplementedError

    @abstractmethod
    def _emit(self) -> PatternFinding:
        raise NotImplementedError


class MorningStarDetector(_StarDetector):
    name = "Morning Star"
    description = "Three-candle reversal pattern. Strong bullish signal."

    def _matches(self, first: Bar, third: Bar) -> bool:
        return first.is_red and third.is_green and third.close > first.body_midpoint

    def _emit(self) -> PatternFinding:
        return self._finding(PatternType.BULLISH, Action.BUY)


class EveningStarDetector(_StarDetector):
    name = "Evening Star"
    description = "Three-candle reversal pattern. Strong bearish signal."

    def _matches(self, first: Bar, third: Bar) -> bool:
        return first.is_green and third.is_red and third.close < first.body_midpoint

    def _emit(self) -> PatternFinding:
        return self._finding(PatternType.BEARISH, Action.SELL)


# Evaluation order fixes the output order.
DEFAULT_DETECTORS: tuple[PatternDetector, ...] = (
    DojiDetector(),
    HammerDetector(),
    BullishEngulfingDetector(),
    BearishEngulfingDetector(),
    ShootingStarDetector(),
    MorningStarDetector(),
    EveningStarDetector(),
)

DETECTOR_NAMES = tuple(d.name for d in DEFAULT_DETECTORS)


class PatternAnalyzer:
    """Runs an ordered list of detectors over a series."""

    def __init__(
        self,
        detectors: Sequence[PatternDetector] = DEFAULT_DETECTORS,
        disabled: Collection[str] = (),
    ):
        """
        Initialize the PatternAnalyzer.

        Args:
            detectors: Detector units, evaluated in order.
            disabled: Pattern names to skip (e.g. {"Doji"}).
        """
        skip = set(disabled)
        self.detectors = [d for d in detectors if d.name not in skip]

    def check_patterns(
        self,
        series: BarSeries,
        min_confidence: Optional[float] = None,
        timeframe: Optional[str] = None,
    ) -> List[PatternFinding]:
        """
        Collect findings from every enabled detector.

        Args:
            series: Validated BarSeries.
            min_confidence: If given, keep only findings strictly above it.
            timeframe: Optional interval label stamped on each finding.

        Returns:
            List[PatternFinding]: In detector order. Empty for short series.
        """
        findings: List[PatternFinding] = []
        for detector in self.detectors:
            finding = detector.detect(series)
            if finding is None:
                continue
            if min_confidence is not None and finding.confidence <= min_confidence:
                logger.debug(
                    f"Dropping {finding.name} (confidence {finding.confidence} "
                    f"<= {min_confidence})"
                )
                continue
            if timeframe is not None:
                finding = finding.model_copy(update={"timeframe": timeframe})
            findings.append(finding)
        return findings


def detect_patterns(series: BarSeries) -> List[PatternFinding]:
    """Run every default detector over ``series`` without a confidence gate."""
    return PatternAnalyzer().check_patterns(series)
