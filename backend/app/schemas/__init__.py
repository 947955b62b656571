"""
TA Dashboard Schema Contracts

This module defines all JSON contracts between system components.
These are the authoritative interfaces - all modules must conform to these schemas.
"""

from app.schemas.market import (
    HistoryRequest,
    Bar,
    StockQuote,
    PriceHistory,
)
from app.schemas.indicators import (
    ChannelWidth,
    PivotType,
    IndicatorParams,
    SeriesPoint,
    MACDPoint,
    BandPoint,
    DarvasBox,
    FibonacciLevel,
    PivotLevels,
    VolumeProfileLevel,
    AnchoredVWAP,
    HistoricalVolatility,
    IndicatorOutput,
)

__all__ = [
    # Market
    "HistoryRequest",
    "Bar",
    "StockQuote",
    "PriceHistory",
    # Indicators
    "ChannelWidth",
    "PivotType",
    "IndicatorParams",
    "SeriesPoint",
    "MACDPoint",
    "BandPoint",
    "DarvasBox",
    "FibonacciLevel",
    "PivotLevels",
    "VolumeProfileLevel",
    "AnchoredVWAP",
    "HistoricalVolatility",
    "IndicatorOutput",
]
