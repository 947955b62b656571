"""
Indicator Engine Service

CONTRACT:
    Input:  PriceHistory (ascending daily bars)
    Output: IndicatorOutput

RESPONSIBILITIES:
    - Moving averages and oscillators (SMA, EMA, RSI, MACD, MFI)
    - Volatility and bands (ATR, Bollinger, Keltner, historical volatility)
    - Volume flow (OBV, ADL, CMF, anchored VWAP)
    - Levels and patterns (Fibonacci, Darvas boxes, regression channel, pivots,
      volume profile, Heikin-Ashi)

PURE PYTHON - Uses NumPy for calculations.
All math is deterministic and reproducible.
"""

from app.services.indicators.interface import IndicatorServiceInterface
from app.services.indicators.service import IndicatorService, get_indicator_service

__all__ = [
    "IndicatorServiceInterface",
    "IndicatorService",
    "get_indicator_service",
]
