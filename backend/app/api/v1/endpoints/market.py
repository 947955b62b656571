"""
Market Data API Endpoints
"""

import logging

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response
from pydantic import ValidationError as PydanticValidationError

from app.schemas.market import PriceHistory, StockQuote
from app.services.base import DataUnavailableError, SymbolNotFoundError
from app.services.data_ingestion import (
    get_data_ingestion_service,
    history_to_csv,
    quote_to_csv,
)
from app.services.data_ingestion.csv_export import csv_filename

logger = logging.getLogger(__name__)

router = APIRouter()


async def load_history(symbol: str, years: int = 1, refresh: bool = False) -> PriceHistory:
    """Fetch a history, translating service errors to HTTP errors."""
    service = get_data_ingestion_service()
    try:
        return await service.get_history(symbol, years=years, use_cache=not refresh)
    except PydanticValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid request: {e.errors()}")
    except SymbolNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except DataUnavailableError as e:
        logger.error(f"History unavailable for {symbol}: {e.details}")
        raise HTTPException(status_code=502, detail=e.message)


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/health")
async def check_data_health():
    """Check whether at least one data provider answers."""
    service = get_data_ingestion_service()
    healthy = await service.health_check()
    return {
        "service": service.name,
        "healthy": healthy,
    }


@router.get("/{symbol}/history", response_model=PriceHistory)
async def get_history(
    symbol: str,
    years: int = Query(default=1, ge=1, le=5),
    refresh: bool = Query(default=False, description="Bypass the history cache"),
):
    """
    Get the latest quote and daily OHLCV bars for a symbol.

    Served from cache when a fresh entry exists.
    """
    return await load_history(symbol, years, refresh)


@router.get("/{symbol}/quote", response_model=StockQuote)
async def get_quote(symbol: str):
    """Latest session summary for a symbol."""
    history = await load_history(symbol)
    return history.quote


@router.get("/{symbol}/history.csv")
async def download_history_csv(
    symbol: str,
    years: int = Query(default=1, ge=1, le=5),
):
    """Daily bars as CSV: Date,Open,High,Low,Close,Volume."""
    history = await load_history(symbol, years)
    return _csv_response(
        history_to_csv(history), csv_filename(history.symbol, "historical_data")
    )


@router.get("/{symbol}/quote.csv")
async def download_quote_csv(symbol: str):
    """Latest price as a one-row CSV."""
    history = await load_history(symbol)
    return _csv_response(
        quote_to_csv(history.quote), csv_filename(history.symbol, "latest_price")
    )
