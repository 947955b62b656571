"""
Price-Level and Pattern Detectors

Heikin-Ashi candles, Darvas boxes, Fibonacci retracements, linear-regression
channels, pivots and volume profile. Same array conventions as calculations.py.
"""

from datetime import date
from typing import Optional, Sequence, Union

import numpy as np

from app.schemas.indicators import (
    ChannelWidth,
    DarvasBox,
    FibonacciLevel,
    PivotLevels,
    PivotType,
    VolumeProfileLevel,
)
from app.services.indicators.calculations import check_period


FIBONACCI_RATIOS = (0.0, 0.236, 0.382, 0.5, 0.618, 0.786, 1.0)

# Consecutive lower lows that close a Darvas box
DARVAS_CONFIRM_BARS = 3

VALUE_AREA_SHARE = 0.7


# =============================================================================
# CANDLE TRANSFORMS
# =============================================================================


def heikin_ashi(
    opens: np.ndarray,
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Heikin-Ashi candles.

    Returns: (ha_open, ha_high, ha_low, ha_close)

    ha_open chains off the previous Heikin-Ashi candle; the first candle
    opens at the raw open.
    """
    n = len(closes)
    ha_open = np.zeros(n)
    ha_high = np.zeros(n)
    ha_low = np.zeros(n)
    ha_close = np.zeros(n)

    for i in range(n):
        ha_close[i] = (opens[i] + highs[i] + lows[i] + closes[i]) / 4
        if i == 0:
            ha_open[i] = opens[i]
        else:
            ha_open[i] = (ha_open[i - 1] + ha_close[i - 1]) / 2
        ha_high[i] = max(highs[i], ha_open[i], ha_close[i])
        ha_low[i] = min(lows[i], ha_open[i], ha_close[i])

    return ha_open, ha_high, ha_low, ha_close


# =============================================================================
# BOX / LEVEL DETECTORS
# =============================================================================


def darvas_boxes(
    times: Sequence[date],
    highs: np.ndarray,
    lows: np.ndarray,
    confirm_bars: int = DARVAS_CONFIRM_BARS,
) -> list[DarvasBox]:
    """
    Darvas boxes in a single pass.

    A new high restarts the open box at the current bar. A new low extends the
    box downward; after `confirm_bars` consecutive lower lows the box is
    closed at the current bar and a fresh box starts there. Any other bar
    resets the lower-low count. A box still open at the end is emitted with
    the last bar as its end, unless it started on that bar.
    """
    check_period(confirm_bars)
    boxes: list[DarvasBox] = []
    if len(times) == 0:
        return boxes

    box_high = float(highs[0])
    box_low = float(lows[0])
    box_start = times[0]
    lower_lows = 0

    for i in range(1, len(times)):
        if highs[i] > box_high:
            box_high = float(highs[i])
            box_low = float(lows[i])
            box_start = times[i]
            lower_lows = 0
        elif lows[i] < box_low:
            box_low = float(lows[i])
            lower_lows += 1
            if lower_lows >= confirm_bars:
                boxes.append(
                    DarvasBox(start=box_start, end=times[i], high=box_high, low=box_low)
                )
                box_high = float(highs[i])
                box_low = float(lows[i])
                box_start = times[i]
                lower_lows = 0
        else:
            lower_lows = 0

    if box_start != times[-1]:
        boxes.append(
            DarvasBox(start=box_start, end=times[-1], high=box_high, low=box_low)
        )

    return boxes


def fibonacci_levels(
    highs: np.ndarray,
    lows: np.ndarray,
    ratios: Sequence[float] = FIBONACCI_RATIOS,
) -> list[FibonacciLevel]:
    """Retracement levels measured down from the highest high of the span."""
    if len(highs) == 0:
        return []

    high = float(np.max(highs))
    low = float(np.min(lows))
    diff = high - low

    return [FibonacciLevel(ratio=ratio, price=high - diff * ratio) for ratio in ratios]


def linear_regression_channel(
    closes: np.ndarray,
    period: int = 100,
    k: float = 2.0,
    width: Union[ChannelWidth, str] = ChannelWidth.DEVIATION,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Rolling linear-regression channel.

    Returns: (upper, middle, lower)

    Each window of `period` closes is fitted against x = 1..period; the middle
    is the fitted value at x = period. "deviation" width is k times the
    population std of the residuals, "range" width is k times half the
    window's close range.
    """
    check_period(period, minimum=2)
    width = ChannelWidth(width)

    n = len(closes)
    upper = np.full(n, np.nan)
    middle = np.full(n, np.nan)
    lower = np.full(n, np.nan)
    if n < period:
        return upper, middle, lower

    x = np.arange(1, period + 1, dtype=float)
    x_mean = (period + 1) / 2
    x_sum = x.sum()
    denominator = float(np.dot(x, x)) - x_sum * x_mean

    for i in range(period - 1, n):
        window = closes[i - period + 1 : i + 1]
        y_mean = float(np.mean(window))

        slope = (float(np.dot(x, window)) - x_sum * y_mean) / denominator
        intercept = y_mean - slope * x_mean

        if width == ChannelWidth.DEVIATION:
            residuals = window - (intercept + slope * x)
            band = k * float(np.sqrt(np.mean(residuals**2)))
        else:
            band = k * float(np.max(window) - np.min(window)) / 2

        middle[i] = intercept + slope * period
        upper[i] = middle[i] + band
        lower[i] = middle[i] - band

    return upper, middle, lower


# =============================================================================
# PIVOTS
# =============================================================================


def rolling_pivot_points(
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
    timeframe: int = 20,
    count: int = 99,
) -> np.ndarray:
    """
    Pivot for bar i over the previous `timeframe` bars:
    (max high + min low + last close) / 3.

    Only the last `count` pivots are kept; everything else is NaN.
    """
    check_period(timeframe)
    check_period(count)
    n = len(closes)
    result = np.full(n, np.nan)

    for i in range(max(timeframe, n - count), n):
        start = i - timeframe
        result[i] = (
            np.max(highs[start:i]) + np.min(lows[start:i]) + closes[i - 1]
        ) / 3

    return result


def pivot_levels(
    high: float,
    low: float,
    close: float,
    pivot_type: Union[PivotType, str] = PivotType.STANDARD,
) -> PivotLevels:
    """
    Floor-trader pivot levels.

    Types: standard, fibonacci, camarilla
    """
    pivot_type = PivotType(pivot_type)
    pivot = (high + low + close) / 3
    range_hl = high - low

    if pivot_type == PivotType.STANDARD:
        r1 = 2 * pivot - low
        s1 = 2 * pivot - high
        r2 = pivot + range_hl
        s2 = pivot - range_hl
        r3 = high + 2 * (pivot - low)
        s3 = low - 2 * (high - pivot)

    elif pivot_type == PivotType.FIBONACCI:
        r1 = pivot + 0.382 * range_hl
        s1 = pivot - 0.382 * range_hl
        r2 = pivot + 0.618 * range_hl
        s2 = pivot - 0.618 * range_hl
        r3 = pivot + range_hl
        s3 = pivot - range_hl

    else:  # camarilla
        r1 = close + range_hl * 1.1 / 12
        s1 = close - range_hl * 1.1 / 12
        r2 = close + range_hl * 1.1 / 6
        s2 = close - range_hl * 1.1 / 6
        r3 = close + range_hl * 1.1 / 4
        s3 = close - range_hl * 1.1 / 4

    return PivotLevels(
        pivot=pivot, r1=r1, r2=r2, r3=r3, s1=s1, s2=s2, s3=s3, type=pivot_type
    )


def latest_pivot_levels(
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
    timeframe: int = 20,
    pivot_type: Union[PivotType, str] = PivotType.STANDARD,
) -> Optional[PivotLevels]:
    """Pivot levels over the most recent `timeframe` bars, None if too short."""
    check_period(timeframe)
    if len(closes) < timeframe:
        return None

    return pivot_levels(
        float(np.max(highs[-timeframe:])),
        float(np.min(lows[-timeframe:])),
        float(closes[-1]),
        pivot_type,
    )


# =============================================================================
# VOLUME PROFILE
# =============================================================================


def volume_profile(
    closes: np.ndarray,
    volumes: np.ndarray,
    price_step: float = 1.0,
    value_area: float = VALUE_AREA_SHARE,
) -> list[VolumeProfileLevel]:
    """
    Volume traded per price bucket, ascending by price.

    Closes are rounded to the nearest `price_step`. The largest bucket is the
    point of control; the value area is the smallest set of largest buckets
    holding at least `value_area` of total volume.
    """
    if price_step <= 0:
        raise ValueError(f"price_step must be > 0, got {price_step}")
    if len(closes) == 0:
        return []

    buckets: dict[float, float] = {}
    for close, volume in zip(closes, volumes):
        # Round half up
        price = float(np.floor(close / price_step + 0.5) * price_step)
        buckets[price] = buckets.get(price, 0.0) + float(volume)

    prices = sorted(buckets)
    poc_price = max(prices, key=lambda p: buckets[p])

    target = sum(buckets.values()) * value_area
    in_value_area: set[float] = set()
    accumulated = 0.0
    for price in sorted(prices, key=lambda p: buckets[p], reverse=True):
        in_value_area.add(price)
        accumulated += buckets[price]
        if accumulated >= target:
            break

    return [
        VolumeProfileLevel(
            price=price,
            volume=buckets[price],
            is_poc=price == poc_price,
            is_value_area=price in in_value_area,
        )
        for price in prices
    ]
