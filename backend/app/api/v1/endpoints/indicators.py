"""
Indicator API Endpoints

Endpoints for technical indicator calculations.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from app.schemas.market import Bar
from app.schemas.indicators import (
    ChannelWidth,
    IndicatorOutput,
    IndicatorParams,
    PivotType,
)
from app.services.indicators import get_indicator_service
from app.api.v1.endpoints.market import load_history

logger = logging.getLogger(__name__)

router = APIRouter()


class CalculateRequest(BaseModel):
    """Caller-supplied bars to run the indicators over."""

    symbol: str = Field(..., min_length=1, max_length=12)
    bars: list[Bar]
    params: Optional[IndicatorParams] = None


def _build_params(overrides: dict) -> IndicatorParams:
    try:
        return IndicatorParams(**{k: v for k, v in overrides.items() if v is not None})
    except PydanticValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid parameters: {e.errors()}")


@router.get("/{symbol}", response_model=IndicatorOutput)
async def get_indicators(
    symbol: str,
    years: int = Query(default=1, ge=1, le=5),
    refresh: bool = Query(default=False, description="Bypass the history cache"),
    rsi_period: Optional[int] = Query(default=None, ge=1),
    macd_fast: Optional[int] = Query(default=None, ge=1),
    macd_slow: Optional[int] = Query(default=None, ge=1),
    macd_signal: Optional[int] = Query(default=None, ge=1),
    mfi_period: Optional[int] = Query(default=None, ge=1),
    atr_period: Optional[int] = Query(default=None, ge=1),
    bollinger_period: Optional[int] = Query(default=None, ge=1),
    bollinger_k: Optional[float] = Query(default=None, ge=0),
    keltner_ema_period: Optional[int] = Query(default=None, ge=1),
    keltner_atr_period: Optional[int] = Query(default=None, ge=1),
    keltner_multiplier: Optional[float] = Query(default=None, ge=0),
    cmf_period: Optional[int] = Query(default=None, ge=1),
    regression_period: Optional[int] = Query(default=None, ge=2),
    regression_k: Optional[float] = Query(default=None, ge=0),
    regression_width: Optional[ChannelWidth] = None,
    pivot_timeframe: Optional[int] = Query(default=None, ge=1),
    pivot_type: Optional[PivotType] = None,
    volume_profile_step: Optional[float] = Query(default=None, gt=0),
):
    """
    Get every indicator for a symbol.

    Fetches the daily history (cache first) and runs the full indicator set.
    Query parameters override the default periods and multipliers.
    Indicators that fail are listed in `errors`; the rest are still returned.
    """
    params = _build_params(
        {
            "rsi_period": rsi_period,
            "macd_fast": macd_fast,
            "macd_slow": macd_slow,
            "macd_signal": macd_signal,
            "mfi_period": mfi_period,
            "atr_period": atr_period,
            "bollinger_period": bollinger_period,
            "bollinger_k": bollinger_k,
            "keltner_ema_period": keltner_ema_period,
            "keltner_atr_period": keltner_atr_period,
            "keltner_multiplier": keltner_multiplier,
            "cmf_period": cmf_period,
            "regression_period": regression_period,
            "regression_k": regression_k,
            "regression_width": regression_width,
            "pivot_timeframe": pivot_timeframe,
            "pivot_type": pivot_type,
            "volume_profile_step": volume_profile_step,
        }
    )

    history = await load_history(symbol, years, refresh)

    indicator_service = get_indicator_service()
    return await indicator_service.calculate_for_history(history, params)


@router.post("/calculate", response_model=IndicatorOutput)
async def calculate_indicators(request: CalculateRequest):
    """Run the indicator set over caller-supplied bars."""
    bars = sorted(request.bars, key=lambda b: b.time)
    if len({b.time for b in bars}) != len(bars):
        raise HTTPException(status_code=400, detail="Bar times must be unique")

    indicator_service = get_indicator_service()
    return indicator_service.compute(request.symbol.upper(), bars, request.params)
