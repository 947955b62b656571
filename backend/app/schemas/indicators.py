"""
CONTRACT 2: Indicator Engine

Input: list[Bar] (from PriceHistory)
Output: IndicatorOutput

This module performs ALL mathematical calculations.
Pure Python/NumPy - every series is recomputed from the full bar list.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from app.schemas.market import Bar


# =============================================================================
# ENUMS
# =============================================================================


class ChannelWidth(str, Enum):
    DEVIATION = "deviation"
    RANGE = "range"


class PivotType(str, Enum):
    STANDARD = "standard"
    FIBONACCI = "fibonacci"
    CAMARILLA = "camarilla"


# =============================================================================
# INPUT: IndicatorParams
# =============================================================================


class IndicatorParams(BaseModel):
    """
    Periods and multipliers used by the aggregate calculation.
    Defaults reproduce the dashboard's charts.
    """

    rsi_period: int = Field(default=14, ge=1)
    rsi_ema_period: int = Field(default=7, ge=1)
    macd_fast: int = Field(default=12, ge=1)
    macd_slow: int = Field(default=26, ge=1)
    macd_signal: int = Field(default=9, ge=1)
    mfi_period: int = Field(default=14, ge=1)
    atr_period: int = Field(default=14, ge=1)
    bollinger_period: int = Field(default=20, ge=1)
    bollinger_k: float = Field(default=2.0, ge=0)
    keltner_ema_period: int = Field(default=20, ge=1)
    keltner_atr_period: int = Field(default=20, ge=1)
    keltner_multiplier: float = Field(default=2.0, ge=0)
    volatility_periods: list[int] = Field(default=[10, 20, 30], min_length=1)
    cmf_period: int = Field(default=20, ge=1)
    obv_ema_period: int = Field(default=50, ge=1)
    vwap_anchor_bars: int = Field(default=100, ge=1)
    sma_overlay_period: int = Field(default=200, ge=1)
    ema_overlay_period: int = Field(default=21, ge=1)
    regression_period: int = Field(default=100, ge=2)
    regression_k: float = Field(default=2.0, ge=0)
    regression_width: ChannelWidth = ChannelWidth.DEVIATION
    pivot_timeframe: int = Field(default=20, ge=1)
    pivot_count: int = Field(default=99, ge=1)
    pivot_type: PivotType = PivotType.STANDARD
    volume_profile_step: float = Field(default=1.0, gt=0)


# =============================================================================
# OUTPUT: Derived Points
# =============================================================================


class SeriesPoint(BaseModel):
    """One value of a derived series, aligned to a bar."""

    time: date
    value: float


class MACDPoint(BaseModel):
    """MACD line, signal and histogram for one bar."""

    time: date
    macd: float
    signal: float
    histogram: float


class BandPoint(BaseModel):
    """Upper/middle/lower channel values for one bar."""

    time: date
    upper: float
    middle: float
    lower: float


class DarvasBox(BaseModel):
    """Closed (or trailing) price consolidation range."""

    start: date
    end: date
    high: float
    low: float


class FibonacciLevel(BaseModel):
    """Horizontal retracement level measured down from the span high."""

    ratio: float = Field(..., ge=0, le=1)
    price: float


class PivotLevels(BaseModel):
    """Pivot point levels."""

    pivot: float
    r1: float
    r2: float
    r3: float
    s1: float
    s2: float
    s3: float
    type: PivotType = PivotType.STANDARD


class VolumeProfileLevel(BaseModel):
    """Single level in volume profile."""

    price: float
    volume: float = Field(..., ge=0)
    is_poc: bool = Field(..., description="Is Point of Control")
    is_value_area: bool


class AnchoredVWAP(BaseModel):
    """Two VWAP lines anchored at different bars."""

    one_year: list[SeriesPoint] = Field(default_factory=list)
    hundred_bar: list[SeriesPoint] = Field(default_factory=list)


class HistoricalVolatility(BaseModel):
    """Annualized volatility for several lookbacks plus a trend line."""

    series: dict[int, list[SeriesPoint]] = Field(default_factory=dict)
    trend: list[SeriesPoint] = Field(
        default_factory=list,
        description="OLS trend fitted over the longest period's series",
    )
    trend_period: Optional[int] = None


# =============================================================================
# OUTPUT: IndicatorOutput (Complete Response)
# =============================================================================


class IndicatorOutput(BaseModel):
    """
    Every derived series for one symbol, computed from one bar snapshot.
    Returned by: Indicator Service
    Consumed by: chart front-end
    """

    symbol: str
    generated_at: datetime
    bar_count: int = Field(..., ge=0)
    params: IndicatorParams

    # Price transforms and overlays
    heikin_ashi: list[Bar] = Field(default_factory=list)
    sma_overlay: list[SeriesPoint] = Field(default_factory=list)
    ema_overlay: list[SeriesPoint] = Field(default_factory=list)

    # Oscillators
    rsi: list[SeriesPoint] = Field(default_factory=list)
    rsi_ema: list[SeriesPoint] = Field(default_factory=list)
    macd: list[MACDPoint] = Field(default_factory=list)
    mfi: list[SeriesPoint] = Field(default_factory=list)

    # Volatility and bands
    atr: list[SeriesPoint] = Field(default_factory=list)
    bollinger: list[BandPoint] = Field(default_factory=list)
    keltner: list[BandPoint] = Field(default_factory=list)
    historical_volatility: HistoricalVolatility = Field(
        default_factory=HistoricalVolatility
    )

    # Volume flow
    obv: list[SeriesPoint] = Field(default_factory=list)
    obv_ema: list[SeriesPoint] = Field(default_factory=list)
    adl: list[SeriesPoint] = Field(default_factory=list)
    cmf: list[SeriesPoint] = Field(default_factory=list)
    anchored_vwap: AnchoredVWAP = Field(default_factory=AnchoredVWAP)

    # Levels and patterns
    fibonacci: list[FibonacciLevel] = Field(default_factory=list)
    darvas_boxes: list[DarvasBox] = Field(default_factory=list)
    regression_channel: list[BandPoint] = Field(default_factory=list)
    pivot_points: list[SeriesPoint] = Field(default_factory=list)
    pivot_levels: Optional[PivotLevels] = None
    volume_profile: list[VolumeProfileLevel] = Field(default_factory=list)

    errors: dict[str, str] = Field(
        default_factory=dict,
        description="Indicators that failed, with the error message",
    )
