"""Technical analysis indicators module."""

from typing import Iterable, List, Optional

import pandas as pd

from stocksense.domain.schemas import (
    BarSeries,
    IndicatorReading,
    IndicatorSignal,
    IndicatorSnapshot,
    MacdValue,
)


class TechnicalIndicators:
    """
    Indicator Calculator over a BarSeries.

    Every method is a pure function of the series' closes. When the series is
    too short for an indicator the method returns ``None`` rather than raising.
    """

    RSI_PERIOD = 14
    RSI_OVERBOUGHT = 70.0
    RSI_OVERSOLD = 30.0

    MACD_FAST = 12
    MACD_SLOW = 26
    MACD_SIGNAL = 9

    SMA_PERIODS = (20, 50)

    @staticmethod
    def rsi(series: BarSeries, period: int = RSI_PERIOD) -> Optional[float]:
        """
        Relative Strength Index over the last ``period`` close-to-close moves.

        Gains and losses are averaged with a simple mean (no Wilder smoothing).
        Needs at least ``period + 1`` bars.
        """
        if period < 1 or len(series) < period + 1:
            return None

        change = series.closes.diff().iloc[1:].tail(period)
        avg_gain = change.clip(lower=0).sum() / period
        avg_loss = (-change).clip(lower=0).sum() / period

        if avg_loss == 0:
            return 100.0

        rs = avg_gain / avg_loss
        return float(100 - (100 / (1 + rs)))

    @staticmethod
    def sma(series: BarSeries, period: int) -> Optional[float]:
        """Arithmetic mean of the last ``period`` closes."""
        if period < 1 or len(series) < period:
            return None
        return float(series.closes.tail(period).sum() / period)

    @staticmethod
    def ema(series: BarSeries, period: int) -> Optional[float]:
        """
        Exponential moving average at the latest bar.

        Seeded with the first close of the series (no SMA warm-up), then
        smoothed forward with ``k = 2 / (period + 1)``. With ``adjust=False``
        pandas applies exactly ``ema[i] = close[i] * k + ema[i-1] * (1 - k)``.
        """
        if period < 1 or len(series) < period:
            return None
        k = 2 / (period + 1)
        return float(series.closes.ewm(alpha=k, adjust=False).mean().iloc[-1])

    @staticmethod
    def macd(series: BarSeries) -> Optional[MacdValue]:
        """
        MACD at the latest bar. Needs at least 26 bars.

        The signal line is EMA(9) of the closes, not of the MACD line.
        """
        if len(series) < TechnicalIndicators.MACD_SLOW:
            return None

        fast = TechnicalIndicators.ema(series, TechnicalIndicators.MACD_FAST)
        slow = TechnicalIndicators.ema(series, TechnicalIndicators.MACD_SLOW)
        signal = TechnicalIndicators.ema(series, TechnicalIndicators.MACD_SIGNAL)

        line = fast - slow
        return MacdValue(macd=line, signal=signal, histogram=line - signal)

    @staticmethod
    def compute(
        series: BarSeries,
        rsi_period: int = RSI_PERIOD,
        sma_periods: Iterable[int] = SMA_PERIODS,
    ) -> IndicatorSnapshot:
        """
        Build the full IndicatorSnapshot for a series.

        :param series: Validated BarSeries
        :param rsi_period: RSI look-back
        :param sma_periods: Periods to compute SMAs for
        :return: IndicatorSnapshot with absent fields as None
        """
        return IndicatorSnapshot(
            rsi=TechnicalIndicators.rsi(series, rsi_period),
            macd=TechnicalIndicators.macd(series),
            sma={p: TechnicalIndicators.sma(series, p) for p in sma_periods},
            ema={
                p: TechnicalIndicators.ema(series, p)
                for p in (TechnicalIndicators.MACD_FAST, TechnicalIndicators.MACD_SLOW)
            },
        )

    @staticmethod
    def interpret(
        snapshot: IndicatorSnapshot,
        price: Optional[float],
        rsi_period: int = RSI_PERIOD,
    ) -> List[IndicatorReading]:
        """
        Translate a snapshot into buy / sell / neutral readings.

        RSI above 70 reads as overbought (sell), below 30 as oversold (buy).
        A positive MACD line is bullish. Price above an SMA is bullish.
        Absent values produce no reading.
        """
        readings: List[IndicatorReading] = []

        if snapshot.rsi is not None:
            if snapshot.rsi > TechnicalIndicators.RSI_OVERBOUGHT:
                signal, note = IndicatorSignal.SELL, "Overbought"
            elif snapshot.rsi < TechnicalIndicators.RSI_OVERSOLD:
                signal, note = IndicatorSignal.BUY, "Oversold"
            else:
                signal, note = IndicatorSignal.NEUTRAL, "Momentum neutral"
            readings.append(
                IndicatorReading(
                    name=f"RSI ({rsi_period})",
                    value=snapshot.rsi,
                    signal=signal,
                    description=f"Relative Strength Index: {note}",
                )
            )

        if snapshot.macd is not None:
            line = snapshot.macd.macd
            if line > 0:
                signal = IndicatorSignal.BUY
            elif line < 0:
                signal = IndicatorSignal.SELL
            else:
                signal = IndicatorSignal.NEUTRAL
            readings.append(
                IndicatorReading(
                    name="MACD",
                    value=line,
                    signal=signal,
                    description="Moving Average Convergence Divergence trend strength",
                )
            )

        if price is not None:
            for period, value in sorted(snapshot.sma.items()):
                if value is None:
                    continue
                if price > value:
                    signal, note = IndicatorSignal.BUY, "above"
                elif price < value:
                    signal, note = IndicatorSignal.SELL, "below"
                else:
                    signal, note = IndicatorSignal.NEUTRAL, "at"
                readings.append(
                    IndicatorReading(
                        name=f"SMA ({period})",
                        value=value,
                        signal=signal,
                        description=f"Price trading {note} the {period}-bar average",
                    )
                )

        return readings


def compute_indicators(series: BarSeries) -> IndicatorSnapshot:
    """Compute the default IndicatorSnapshot (RSI 14, MACD, SMA 20/50)."""
    return TechnicalIndicators.compute(series)
