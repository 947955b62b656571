"""
Indicator Series

Public indicator functions: bars in, time-stamped points out.
Warm-up positions are dropped, so every series is right-aligned to the input.
Input shorter than an indicator's warm-up gives an empty list.
"""

import bisect
from datetime import date, timedelta
from typing import Optional, Sequence, Union

import numpy as np

from app.schemas.indicators import (
    BandPoint,
    ChannelWidth,
    DarvasBox,
    FibonacciLevel,
    MACDPoint,
    PivotLevels,
    PivotType,
    SeriesPoint,
    VolumeProfileLevel,
)
from app.schemas.market import Bar
from app.services.indicators import calculations as calc
from app.services.indicators import patterns


# =============================================================================
# CONVERSION HELPERS
# =============================================================================


def to_series(times: Sequence[date], values: np.ndarray) -> list[SeriesPoint]:
    """Pair values with bar times, skipping NaN."""
    return [
        SeriesPoint(time=t, value=float(v))
        for t, v in zip(times, values)
        if not np.isnan(v)
    ]


def to_bands(
    times: Sequence[date],
    upper: np.ndarray,
    middle: np.ndarray,
    lower: np.ndarray,
) -> list[BandPoint]:
    """Pair band triples with bar times where all three are defined."""
    points = []
    for t, u, m, l in zip(times, upper, middle, lower):
        if np.isnan(u) or np.isnan(m) or np.isnan(l):
            continue
        points.append(BandPoint(time=t, upper=float(u), middle=float(m), lower=float(l)))
    return points


def degenerate_bars(points: Sequence[SeriesPoint]) -> list[Bar]:
    """
    Turn a value series into flat bars so bar-based indicators can run on it.

    Built without validation: derived values (OBV, MACD) may be negative.
    """
    return [
        Bar.model_construct(
            time=p.time,
            open=p.value,
            high=p.value,
            low=p.value,
            close=p.value,
            volume=0,
        )
        for p in points
    ]


def _times(bars: Sequence[Bar]) -> list[date]:
    return [b.time for b in bars]


def _closes(bars: Sequence[Bar]) -> np.ndarray:
    return np.array([b.close for b in bars], dtype=float)


def _values(points: Sequence[SeriesPoint]) -> np.ndarray:
    return np.array([p.value for p in points], dtype=float)


# =============================================================================
# MOVING AVERAGES
# =============================================================================


def sma_series(bars: Sequence[Bar], period: int) -> list[SeriesPoint]:
    """SMA of close."""
    return to_series(_times(bars), calc.sma(_closes(bars), period))


def ema_series(bars: Sequence[Bar], period: int) -> list[SeriesPoint]:
    """EMA of close."""
    return to_series(_times(bars), calc.ema(_closes(bars), period))


def sma_of(points: Sequence[SeriesPoint], period: int) -> list[SeriesPoint]:
    """SMA of an arbitrary derived series."""
    return to_series([p.time for p in points], calc.sma(_values(points), period))


def ema_of(points: Sequence[SeriesPoint], period: int) -> list[SeriesPoint]:
    """EMA of an arbitrary derived series (e.g. RSI or OBV)."""
    return to_series([p.time for p in points], calc.ema(_values(points), period))


# =============================================================================
# OSCILLATORS
# =============================================================================


def rsi_series(bars: Sequence[Bar], period: int = 14) -> list[SeriesPoint]:
    return to_series(_times(bars), calc.rsi(_closes(bars), period))


def macd_series(
    bars: Sequence[Bar],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> list[MACDPoint]:
    """MACD points from the first bar where line, signal and histogram all exist."""
    line, signal, histogram = calc.macd(
        _closes(bars), fast_period, slow_period, signal_period
    )
    return [
        MACDPoint(time=t, macd=float(m), signal=float(s), histogram=float(h))
        for t, m, s, h in zip(_times(bars), line, signal, histogram)
        if not (np.isnan(m) or np.isnan(s))
    ]


def mfi_series(bars: Sequence[Bar], period: int = 14) -> list[SeriesPoint]:
    data = calc.OHLCVData.from_bars(bars)
    return to_series(
        _times(bars), calc.mfi(data.highs, data.lows, data.closes, data.volumes, period)
    )


# =============================================================================
# VOLATILITY & BANDS
# =============================================================================


def atr_series(bars: Sequence[Bar], period: int = 14) -> list[SeriesPoint]:
    data = calc.OHLCVData.from_bars(bars)
    return to_series(_times(bars), calc.atr(data.highs, data.lows, data.closes, period))


def bollinger_series(
    bars: Sequence[Bar], period: int = 20, k: float = 2.0
) -> list[BandPoint]:
    upper, middle, lower = calc.bollinger_bands(_closes(bars), period, k)
    return to_bands(_times(bars), upper, middle, lower)


def keltner_series(
    bars: Sequence[Bar],
    ema_period: int = 20,
    atr_period: Optional[int] = None,
    multiplier: float = 2.0,
) -> list[BandPoint]:
    data = calc.OHLCVData.from_bars(bars)
    upper, middle, lower = calc.keltner_channels(
        data.highs, data.lows, data.closes, ema_period, atr_period, multiplier
    )
    return to_bands(_times(bars), upper, middle, lower)


def historical_volatility_series(
    bars: Sequence[Bar], period: int = 20
) -> list[SeriesPoint]:
    """Annualized volatility (%) of daily log returns."""
    return to_series(_times(bars), calc.historical_volatility(_closes(bars), period))


def regression_trend(points: Sequence[SeriesPoint]) -> list[SeriesPoint]:
    """OLS trend line over a derived series, one point per input point."""
    return to_series([p.time for p in points], calc.linear_regression(_values(points)))


# =============================================================================
# VOLUME FLOW
# =============================================================================


def obv_series(bars: Sequence[Bar]) -> list[SeriesPoint]:
    data = calc.OHLCVData.from_bars(bars)
    return to_series(_times(bars), calc.obv(data.closes, data.volumes))


def adl_series(bars: Sequence[Bar]) -> list[SeriesPoint]:
    data = calc.OHLCVData.from_bars(bars)
    return to_series(
        _times(bars), calc.adl(data.highs, data.lows, data.closes, data.volumes)
    )


def cmf_series(bars: Sequence[Bar], period: int = 20) -> list[SeriesPoint]:
    data = calc.OHLCVData.from_bars(bars)
    return to_series(
        _times(bars),
        calc.cmf(data.highs, data.lows, data.closes, data.volumes, period),
    )


def anchored_vwap_series(bars: Sequence[Bar], anchor: int = 0) -> list[SeriesPoint]:
    """VWAP accumulated from bar index `anchor` to the end."""
    data = calc.OHLCVData.from_bars(bars)
    return to_series(
        _times(bars),
        calc.anchored_vwap(data.highs, data.lows, data.closes, data.volumes, anchor),
    )


def one_year_anchor(bars: Sequence[Bar]) -> int:
    """Index of the first bar on or after one year before the last bar."""
    if not bars:
        return 0
    last = bars[-1].time
    try:
        target = last.replace(year=last.year - 1)
    except ValueError:
        # Feb 29
        target = last - timedelta(days=365)
    return bisect.bisect_left(_times(bars), target)


def bars_back_anchor(bars: Sequence[Bar], count: int) -> int:
    """Index `count` bars before the end, clamped to the first bar."""
    return max(0, len(bars) - count)


# =============================================================================
# PATTERNS & LEVELS
# =============================================================================


def heikin_ashi_bars(bars: Sequence[Bar]) -> list[Bar]:
    """Heikin-Ashi candles as bars, volume carried over."""
    data = calc.OHLCVData.from_bars(bars)
    ha_open, ha_high, ha_low, ha_close = patterns.heikin_ashi(
        data.opens, data.highs, data.lows, data.closes
    )
    return [
        Bar(
            time=b.time,
            open=float(o),
            high=float(h),
            low=float(l),
            close=float(c),
            volume=b.volume,
        )
        for b, o, h, l, c in zip(bars, ha_open, ha_high, ha_low, ha_close)
    ]


def darvas_series(bars: Sequence[Bar]) -> list[DarvasBox]:
    data = calc.OHLCVData.from_bars(bars)
    return patterns.darvas_boxes(_times(bars), data.highs, data.lows)


def fibonacci_series(bars: Sequence[Bar]) -> list[FibonacciLevel]:
    data = calc.OHLCVData.from_bars(bars)
    return patterns.fibonacci_levels(data.highs, data.lows)


def regression_channel_series(
    bars: Sequence[Bar],
    period: int = 100,
    k: float = 2.0,
    width: Union[ChannelWidth, str] = ChannelWidth.DEVIATION,
) -> list[BandPoint]:
    upper, middle, lower = patterns.linear_regression_channel(
        _closes(bars), period, k, width
    )
    return to_bands(_times(bars), upper, middle, lower)


def pivot_point_series(
    bars: Sequence[Bar], timeframe: int = 20, count: int = 99
) -> list[SeriesPoint]:
    data = calc.OHLCVData.from_bars(bars)
    return to_series(
        _times(bars),
        patterns.rolling_pivot_points(
            data.highs, data.lows, data.closes, timeframe, count
        ),
    )


def pivot_levels_for(
    bars: Sequence[Bar],
    timeframe: int = 20,
    pivot_type: Union[PivotType, str] = PivotType.STANDARD,
) -> Optional[PivotLevels]:
    data = calc.OHLCVData.from_bars(bars)
    return patterns.latest_pivot_levels(
        data.highs, data.lows, data.closes, timeframe, pivot_type
    )


def volume_profile_for(
    bars: Sequence[Bar], price_step: float = 1.0
) -> list[VolumeProfileLevel]:
    data = calc.OHLCVData.from_bars(bars)
    return patterns.volume_profile(data.closes, data.volumes, price_step)
