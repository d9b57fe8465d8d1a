"""Unit tests for the pattern analysis module."""

import itertools

import pytest

from stocksense.analysis.patterns import (
    DEFAULT_DETECTORS,
    DETECTOR_NAMES,
    BearishEngulfingDetector,
    BullishEngulfingDetector,
    HammerDetector,
    PatternAnalyzer,
    detect_patterns,
)
from stocksense.domain.schemas import Action, BarSeries, PatternType
from tests.factories import make_series

ONE_BAR_PATTERNS = {"Doji", "Hammer", "Shooting Star"}


def names(findings):
    return [f.name for f in findings]


def by_name(findings, name):
    matches = [f for f in findings if f.name == name]
    assert len(matches) == 1, f"expected exactly one {name}, got {names(findings)}"
    return matches[0]


class TestSingleBarPatterns:
    def test_doji_scenario(self, doji_series):
        """Body 1 over range 15 is a Doji; shadows too balanced for anything else."""
        findings = detect_patterns(doji_series)

        assert names(findings) == ["Doji"]
        doji = findings[0]
        assert doji.confidence == 0.8
        assert doji.type == PatternType.NEUTRAL
        assert doji.action == Action.WAIT

    def test_zero_range_bar_detects_nothing(self):
        series = make_series([(100.0, 100.0, 100.0, 100.0)])
        assert detect_patterns(series) == []

    def test_empty_series_detects_nothing(self):
        assert detect_patterns(BarSeries([])) == []

    def test_hammer_without_trend_is_bullish(self):
        # body 1, lower shadow 4, upper shadow 0.2
        series = make_series([(100.0, 101.2, 96.0, 101.0)])
        hammer = by_name(detect_patterns(series), "Hammer")
        assert hammer.type == PatternType.BULLISH
        assert hammer.action == Action.BUY
        assert hammer.confidence == 0.75

    def test_hammer_inside_rising_run_is_demoted(self):
        run = [(c - 0.5, c + 0.5, c - 1.0, c) for c in (95.0, 96.0, 97.0, 98.0, 99.0, 100.0)]
        series = make_series(run + [(100.0, 101.2, 96.0, 101.0)])

        assert HammerDetector.in_uptrend(series)
        hammer = by_name(detect_patterns(series), "Hammer")
        assert hammer.type == PatternType.NEUTRAL
        assert hammer.action == Action.WAIT

    def test_trend_needs_more_than_five_bars(self):
        run = [(c - 0.5, c + 0.5, c - 1.0, c) for c in (97.0, 98.0, 99.0, 100.0)]
        series = make_series(run + [(100.0, 101.2, 96.0, 101.0)])

        assert len(series) == 5
        assert not HammerDetector.in_uptrend(series)
        assert by_name(detect_patterns(series), "Hammer").type == PatternType.BULLISH

    def test_broken_run_keeps_hammer_bullish(self):
        closes = (95.0, 96.0, 97.0, 96.5, 99.0, 100.0)
        run = [(c - 0.5, c + 0.5, c - 1.0, c) for c in closes]
        series = make_series(run + [(100.0, 101.2, 96.0, 101.0)])
        assert by_name(detect_patterns(series), "Hammer").action == Action.BUY

    def test_flat_step_is_not_a_rising_run(self):
        # Last five closes 96, 96, 97, 98, 101: non-decreasing but not strictly rising
        run = [(c - 0.5, c + 0.5, c - 1.0, c) for c in (95.0, 96.0, 96.0, 97.0, 98.0)]
        series = make_series(run + [(100.0, 101.2, 96.0, 101.0)])

        assert len(series) == 6
        assert not HammerDetector.in_uptrend(series)
        hammer = by_name(detect_patterns(series), "Hammer")
        assert hammer.type == PatternType.BULLISH
        assert hammer.action == Action.BUY

    def test_shooting_star(self):
        # body 1, upper shadow 4, lower shadow 0.2
        series = make_series([(100.0, 104.0, 98.8, 99.0)])
        star = by_name(detect_patterns(series), "Shooting Star")
        assert star.type == PatternType.BEARISH
        assert star.action == Action.SELL
        assert star.confidence == 0.7

    def test_findings_follow_detector_order(self):
        # Tiny body with a long lower shadow: both Doji and Hammer
        series = make_series([(100.0, 100.25, 97.0, 100.2)])
        assert names(detect_patterns(series)) == ["Doji", "Hammer"]

    @pytest.mark.parametrize(
        "candle",
        [
            (100.0, 110.0, 95.0, 101.0),
            (100.0, 101.2, 96.0, 101.0),
            (100.0, 104.0, 98.8, 99.0),
            (10.0, 20.0, 5.0, 18.0),
        ],
    )
    def test_single_bar_never_yields_multi_bar_patterns(self, candle):
        found = set(names(detect_patterns(make_series([candle]))))
        assert found <= ONE_BAR_PATTERNS


class TestEngulfing:
    def test_bullish_engulfing_scenario(self, bullish_engulfing_series):
        findings = detect_patterns(bullish_engulfing_series)

        assert names(findings) == ["Bullish Engulfing"]
        assert findings[0].confidence == 0.85
        assert findings[0].type == PatternType.BULLISH
        assert findings[0].action == Action.BUY

    def test_bearish_engulfing(self):
        series = make_series(
            [
                (49.0, 52.0, 48.0, 50.0),
                (51.0, 52.0, 44.0, 45.0),
            ]
        )
        findings = detect_patterns(series)
        assert names(findings) == ["Bearish Engulfing"]
        assert findings[0].action == Action.SELL
        assert findings[0].type == PatternType.BEARISH

    def test_body_must_be_twenty_percent_larger(self):
        # prev body 1.0, current body 1.1 (< 1.2x)
        series = make_series(
            [
                (50.0, 51.0, 48.0, 49.0),
                (48.95, 51.0, 48.0, 50.05),
            ]
        )
        assert "Bullish Engulfing" not in names(detect_patterns(series))

    def test_open_must_gap_below_previous_close(self):
        series = make_series(
            [
                (50.0, 52.0, 48.0, 49.0),
                (49.0, 55.0, 47.0, 53.0),
            ]
        )
        assert "Bullish Engulfing" not in names(detect_patterns(series))

    def test_bullish_and_bearish_are_mutually_exclusive(self):
        bullish, bearish = BullishEngulfingDetector(), BearishEngulfingDetector()
        prices = (40.0, 45.0, 50.0, 55.0, 60.0)
        for (o1, c1), (o2, c2) in itertools.product(
            itertools.permutations(prices, 2), repeat=2
        ):
            series = make_series(
                [
                    (o1, max(o1, c1) + 1, min(o1, c1) - 1, c1),
                    (o2, max(o2, c2) + 1, min(o2, c2) - 1, c2),
                ]
            )
            assert not (bullish.detect(series) and bearish.detect(series))


class TestStars:
    def test_morning_star(self):
        series = make_series(
            [
                (110.0, 111.0, 99.0, 100.0),  # large red, midpoint 105
                (99.0, 100.0, 97.0, 98.5),  # small body
                (99.0, 108.0, 98.5, 107.0),  # green, closes above 105
            ]
        )
        findings = detect_patterns(series)
        assert names(findings) == ["Morning Star"]
        assert findings[0].confidence == 0.8
        assert findings[0].action == Action.BUY

    def test_morning_star_needs_close_above_midpoint(self):
        series = make_series(
            [
                (110.0, 111.0, 99.0, 100.0),
                (99.0, 100.0, 97.0, 98.5),
                (99.0, 105.5, 98.5, 104.0),
            ]
        )
        assert "Morning Star" not in names(detect_patterns(series))

    def test_evening_star(self):
        series = make_series(
            [
                (100.0, 111.0, 99.0, 110.0),  # large green, midpoint 105
                (111.0, 113.0, 110.0, 111.5),  # small body
                (111.0, 111.5, 102.0, 103.0),  # red, closes below 105
            ]
        )
        findings = detect_patterns(series)
        assert names(findings) == ["Evening Star"]
        assert findings[0].type == PatternType.BEARISH
        assert findings[0].action == Action.SELL

    def test_two_bars_never_yield_stars(self, bullish_engulfing_series):
        found = set(names(detect_patterns(bullish_engulfing_series)))
        assert not found & {"Morning Star", "Evening Star"}


class TestPatternAnalyzer:
    def test_default_detector_order(self):
        assert DETECTOR_NAMES == (
            "Doji",
            "Hammer",
            "Bullish Engulfing",
            "Bearish Engulfing",
            "Shooting Star",
            "Morning Star",
            "Evening Star",
        )
        assert len(DEFAULT_DETECTORS) == 7

    def test_disabled_detectors_are_skipped(self, doji_series):
        analyzer = PatternAnalyzer(disabled={"Doji"})
        assert analyzer.check_patterns(doji_series) == []
        assert "Doji" not in [d.name for d in analyzer.detectors]

    def test_min_confidence_is_strict(self):
        series = make_series([(100.0, 104.0, 98.8, 99.0)])
        analyzer = PatternAnalyzer()
        assert names(analyzer.check_patterns(series, min_confidence=0.69)) == [
            "Shooting Star"
        ]
        assert analyzer.check_patterns(series, min_confidence=0.7) == []

    def test_timeframe_is_stamped(self, bullish_engulfing_series):
        findings = PatternAnalyzer().check_patterns(
            bullish_engulfing_series, timeframe="1D"
        )
        assert findings[0].timeframe == "1D"

    def test_detection_is_repeatable(self, bullish_engulfing_series):
        assert detect_patterns(bullish_engulfing_series) == detect_patterns(
            bullish_engulfing_series
        )
