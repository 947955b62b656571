"""
Technical Indicator Calculations

Pure Python/NumPy implementations of technical indicators.
All math is deterministic: every call recomputes from the full input.

Conventions:
    - Input arrays are never modified.
    - Output arrays have the same length as the input; positions inside an
      indicator's warm-up window are NaN.
    - Input shorter than the warm-up window gives an all-NaN array.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from app.schemas.market import Bar


# Trading days used to annualize daily volatility
TRADING_DAYS_PER_YEAR = 252


@dataclass
class OHLCVData:
    """OHLCV data arrays for calculations."""

    opens: np.ndarray
    highs: np.ndarray
    lows: np.ndarray
    closes: np.ndarray
    volumes: np.ndarray

    def __len__(self) -> int:
        return len(self.closes)

    @classmethod
    def from_bars(cls, bars: Sequence[Bar]) -> "OHLCVData":
        """Convert a bar list to float arrays."""
        return cls(
            opens=np.array([b.open for b in bars], dtype=float),
            highs=np.array([b.high for b in bars], dtype=float),
            lows=np.array([b.low for b in bars], dtype=float),
            closes=np.array([b.close for b in bars], dtype=float),
            volumes=np.array([b.volume for b in bars], dtype=float),
        )


def check_period(period: int, minimum: int = 1) -> None:
    """Reject periods that cannot define a window."""
    if period < minimum:
        raise ValueError(f"period must be >= {minimum}, got {period}")


# =============================================================================
# MOVING AVERAGES
# =============================================================================


def sma(data: np.ndarray, period: int) -> np.ndarray:
    """Simple Moving Average."""
    check_period(period)
    result = np.full(len(data), np.nan)
    if len(data) < period:
        return result

    for i in range(period - 1, len(data)):
        result[i] = np.mean(data[i - period + 1 : i + 1])
    return result


def ema(data: np.ndarray, period: int) -> np.ndarray:
    """
    Exponential Moving Average.

    Seeded with the SMA of the first `period` values, then
    ema[i] = (data[i] - ema[i-1]) * k + ema[i-1] with k = 2 / (period + 1).

    Leading NaNs (an EMA over another indicator's warm-up) are skipped:
    the seed window starts at the first finite value.
    """
    check_period(period)
    result = np.full(len(data), np.nan)

    finite = np.flatnonzero(~np.isnan(data))
    if len(finite) == 0:
        return result
    start = int(finite[0])
    if len(data) - start < period:
        return result

    multiplier = 2 / (period + 1)

    # Start with SMA
    seed = start + period - 1
    result[seed] = np.mean(data[start : seed + 1])

    for i in range(seed + 1, len(data)):
        result[i] = (data[i] - result[i - 1]) * multiplier + result[i - 1]

    return result


def wilder_average(data: np.ndarray, period: int) -> np.ndarray:
    """
    Wilder smoothing.

    Simple mean of the first `period` values, then
    avg = (avg_prev * (period - 1) + value) / period.
    """
    check_period(period)
    result = np.full(len(data), np.nan)
    if len(data) < period:
        return result

    result[period - 1] = np.mean(data[:period])
    for i in range(period, len(data)):
        result[i] = (result[i - 1] * (period - 1) + data[i]) / period
    return result


# =============================================================================
# MOMENTUM INDICATORS
# =============================================================================


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    # No losses in the window (including a flat window) pins RSI at 100
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100 - (100 / (1 + rs))


def rsi(closes: np.ndarray, period: int = 14) -> np.ndarray:
    """Relative Strength Index (Wilder). First value at index `period`."""
    check_period(period)
    result = np.full(len(closes), np.nan)
    if len(closes) < period + 1:
        return result

    # Calculate price changes
    deltas = np.diff(closes)

    # Separate gains and losses
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    # First average
    avg_gain = float(np.mean(gains[:period]))
    avg_loss = float(np.mean(losses[:period]))
    result[period] = _rsi_value(avg_gain, avg_loss)

    # Subsequent RSI values using smoothed averages
    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        result[i + 1] = _rsi_value(avg_gain, avg_loss)

    return result


def macd(
    closes: np.ndarray,
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    MACD (Moving Average Convergence Divergence).

    Returns: (macd_line, signal_line, histogram)

    The line is defined from index max(fast, slow) - 1; the signal line is an
    EMA seeded on the first `signal_period` line values, so all three arrays
    are defined from index max(fast, slow) + signal_period - 2.
    """
    fast_ema = ema(closes, fast_period)
    slow_ema = ema(closes, slow_period)

    macd_line = fast_ema - slow_ema

    # Signal line is EMA of MACD line
    signal_line = ema(macd_line, signal_period)

    # Histogram
    histogram = macd_line - signal_line

    return macd_line, signal_line, histogram


def _money_flow_index(positive: float, negative: float) -> float:
    if negative <= 0:
        if positive <= 0:
            # No volume inside the window
            return 50.0
        return 100.0
    money_ratio = positive / negative
    return 100 - (100 / (1 + money_ratio))


def mfi(
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
    volumes: np.ndarray,
    period: int = 14,
) -> np.ndarray:
    """
    Money Flow Index.

    Bar i >= 1 contributes typical_price * volume to the positive flow when its
    typical price rose versus bar i-1, otherwise (unchanged included) to the
    negative flow. The window sums of the last `period` flows are kept
    incrementally. First value at index `period`.
    """
    check_period(period)
    result = np.full(len(closes), np.nan)
    if len(closes) < period + 1:
        return result

    typical_price = (highs + lows + closes) / 3
    raw_money_flow = typical_price * volumes

    # Positive and negative money flow
    pos_flow = np.zeros(len(closes))
    neg_flow = np.zeros(len(closes))

    for i in range(1, len(closes)):
        if typical_price[i] > typical_price[i - 1]:
            pos_flow[i] = raw_money_flow[i]
        else:
            neg_flow[i] = raw_money_flow[i]

    pos_sum = 0.0
    neg_sum = 0.0
    for i in range(1, len(closes)):
        pos_sum += pos_flow[i]
        neg_sum += neg_flow[i]

        # Flow leaving the window
        if i > period:
            pos_sum -= pos_flow[i - period]
            neg_sum -= neg_flow[i - period]

        if i >= period:
            result[i] = _money_flow_index(max(pos_sum, 0.0), max(neg_sum, 0.0))

    return result


# =============================================================================
# VOLATILITY INDICATORS
# =============================================================================


def true_range(highs: np.ndarray, lows: np.ndarray, closes: np.ndarray) -> np.ndarray:
    """True Range. The first bar has no previous close and uses high - low."""
    tr = np.zeros(len(closes))
    if len(closes) == 0:
        return tr

    tr[0] = highs[0] - lows[0]
    for i in range(1, len(closes)):
        tr[i] = max(
            highs[i] - lows[i],
            abs(highs[i] - closes[i - 1]),
            abs(lows[i] - closes[i - 1]),
        )
    return tr


def atr(
    highs: np.ndarray, lows: np.ndarray, closes: np.ndarray, period: int = 14
) -> np.ndarray:
    """Average True Range: Wilder-smoothed TR, first value at index `period - 1`."""
    return wilder_average(true_range(highs, lows, closes), period)


def bollinger_bands(
    closes: np.ndarray, period: int = 20, std_dev: float = 2.0
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Bollinger Bands.

    Returns: (upper, middle, lower)

    Band width uses the population standard deviation of the window.
    """
    middle = sma(closes, period)

    # Standard deviation
    std = np.full(len(closes), np.nan)
    for i in range(period - 1, len(closes)):
        std[i] = np.std(closes[i - period + 1 : i + 1])

    upper = middle + (std_dev * std)
    lower = middle - (std_dev * std)

    return upper, middle, lower


def keltner_channels(
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
    ema_period: int = 20,
    atr_period: Optional[int] = None,
    multiplier: float = 2.0,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Keltner Channels.

    Returns: (upper, middle, lower)

    Middle is the EMA of close; bands sit `multiplier` ATRs away. The ATR
    period defaults to the EMA period.
    """
    if atr_period is None:
        atr_period = ema_period

    middle = ema(closes, ema_period)
    atr_values = atr(highs, lows, closes, atr_period)

    upper = middle + multiplier * atr_values
    lower = middle - multiplier * atr_values

    return upper, middle, lower


def historical_volatility(closes: np.ndarray, period: int = 20) -> np.ndarray:
    """
    Annualized historical volatility in percent.

    Sample standard deviation of the last `period` daily log returns ending at
    each bar, times sqrt(252) * 100. First value at index `period`.
    A return involving a non-positive price counts as 0.
    """
    check_period(period, minimum=2)
    result = np.full(len(closes), np.nan)
    if len(closes) < period + 1:
        return result

    # returns[i] is the log return from bar i-1 to bar i
    returns = np.zeros(len(closes))
    for i in range(1, len(closes)):
        if closes[i] > 0 and closes[i - 1] > 0:
            returns[i] = np.log(closes[i] / closes[i - 1])

    annualize = np.sqrt(TRADING_DAYS_PER_YEAR) * 100
    for i in range(period, len(closes)):
        window = returns[i - period + 1 : i + 1]
        result[i] = np.std(window, ddof=1) * annualize

    return result


def linear_regression(values: np.ndarray) -> np.ndarray:
    """
    Ordinary least squares fit of values against their index (0..n-1).

    Returns the fitted line evaluated at every index.
    """
    n = len(values)
    if n == 0:
        return np.array([], dtype=float)

    x = np.arange(n, dtype=float)
    sum_x = x.sum()
    sum_y = float(np.sum(values))
    sum_xy = float(np.dot(x, values))
    sum_xx = float(np.dot(x, x))

    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        # Single point
        return np.full(n, sum_y / n)

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return slope * x + intercept


# =============================================================================
# VOLUME INDICATORS
# =============================================================================


def obv(closes: np.ndarray, volumes: np.ndarray) -> np.ndarray:
    """On-Balance Volume, starting at 0 on the first bar."""
    result = np.zeros(len(closes))

    for i in range(1, len(closes)):
        if closes[i] > closes[i - 1]:
            result[i] = result[i - 1] + volumes[i]
        elif closes[i] < closes[i - 1]:
            result[i] = result[i - 1] - volumes[i]
        else:
            result[i] = result[i - 1]

    return result


def money_flow_multiplier(
    highs: np.ndarray, lows: np.ndarray, closes: np.ndarray
) -> np.ndarray:
    """((close - low) - (high - close)) / (high - low), 0 where high == low."""
    price_range = highs - lows
    result = np.zeros(len(closes))
    np.divide(
        (closes - lows) - (highs - closes),
        price_range,
        out=result,
        where=price_range != 0,
    )
    return result


def adl(
    highs: np.ndarray, lows: np.ndarray, closes: np.ndarray, volumes: np.ndarray
) -> np.ndarray:
    """Accumulation/Distribution Line: running sum of money flow volume."""
    return np.cumsum(money_flow_multiplier(highs, lows, closes) * volumes)


def cmf(
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
    volumes: np.ndarray,
    period: int = 20,
) -> np.ndarray:
    """Chaikin Money Flow. A window with zero volume gives 0."""
    check_period(period)
    result = np.full(len(closes), np.nan)
    if len(closes) < period:
        return result

    money_flow_volume = money_flow_multiplier(highs, lows, closes) * volumes

    for i in range(period - 1, len(closes)):
        volume_sum = np.sum(volumes[i - period + 1 : i + 1])
        if volume_sum > 0:
            result[i] = np.sum(money_flow_volume[i - period + 1 : i + 1]) / volume_sum
        else:
            result[i] = 0.0

    return result


def anchored_vwap(
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
    volumes: np.ndarray,
    anchor: int = 0,
) -> np.ndarray:
    """
    Volume Weighted Average Price accumulated from the anchor bar onward.

    NaN before the anchor. While cumulative volume is still zero the bar's
    typical price is used.
    """
    result = np.full(len(closes), np.nan)
    if anchor < 0 or anchor >= len(closes):
        return result

    typical_price = (highs[anchor:] + lows[anchor:] + closes[anchor:]) / 3
    cumulative_tpv = np.cumsum(typical_price * volumes[anchor:])
    cumulative_volume = np.cumsum(volumes[anchor:])

    # Avoid division by zero
    vwap = typical_price.copy()
    np.divide(cumulative_tpv, cumulative_volume, out=vwap, where=cumulative_volume > 0)
    result[anchor:] = vwap

    return result
