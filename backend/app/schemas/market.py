"""
CONTRACT 1: Data Ingestion Layer

Input: HistoryRequest
Output: PriceHistory

This module fetches daily bars from external providers (Polygon.io, Yahoo Finance)
and normalizes them into a standard format. Well-formedness of bars is enforced
here so that the indicator engine can trust its input.
"""

from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# INPUT: HistoryRequest
# =============================================================================


class HistoryRequest(BaseModel):
    """
    Request for a symbol's daily history.
    Sent by: API
    Received by: Data Ingestion Service
    """

    symbol: str = Field(
        ...,
        min_length=1,
        max_length=12,
        description="Ticker symbol (e.g., 'AAPL')",
    )
    years: int = Field(
        default=1,
        ge=1,
        le=5,
        description="Calendar years of daily bars to fetch",
    )
    use_cache: bool = Field(
        default=True,
        description="Serve from the history cache when a fresh entry exists",
    )


# =============================================================================
# OUTPUT: PriceHistory Components
# =============================================================================


class Bar(BaseModel):
    """Single daily OHLCV bar."""

    model_config = ConfigDict(frozen=True)

    time: date
    open: float = Field(..., ge=0)
    high: float = Field(..., ge=0)
    low: float = Field(..., ge=0)
    close: float = Field(..., ge=0)
    volume: float = Field(..., ge=0)

    @model_validator(mode="after")
    def check_price_range(self) -> "Bar":
        if self.low > self.high:
            raise ValueError(f"low {self.low} above high {self.high} on {self.time}")
        for name in ("open", "close"):
            price = getattr(self, name)
            if price < self.low or price > self.high:
                raise ValueError(
                    f"{name} {price} outside [{self.low}, {self.high}] on {self.time}"
                )
        return self


class StockQuote(BaseModel):
    """Latest session summary for a symbol."""

    symbol: str
    price: float = Field(..., ge=0)
    open: float = Field(..., ge=0)
    high: float = Field(..., ge=0)
    low: float = Field(..., ge=0)
    volume: float = Field(..., ge=0)
    latest_trading_day: Optional[date] = None
    previous_close: float = Field(..., ge=0)
    change: float
    change_percent: float


# =============================================================================
# OUTPUT: PriceHistory (Complete Response)
# =============================================================================


class PriceHistory(BaseModel):
    """
    Quote plus ascending daily bars for one symbol.
    Returned by: Data Ingestion Service
    Consumed by: Indicator Engine, CSV export
    """

    symbol: str
    source: str = Field(..., description="Provider that supplied the bars")
    fetched_at: datetime
    quote: StockQuote
    bars: list[Bar]

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "symbol": "AAPL",
                "source": "Polygon.io",
                "fetched_at": "2024-06-03T14:30:00Z",
                "quote": {
                    "symbol": "AAPL",
                    "price": 192.25,
                    "open": 191.0,
                    "high": 193.1,
                    "low": 190.2,
                    "volume": 48500000,
                    "latest_trading_day": "2024-05-31",
                    "previous_close": 190.29,
                    "change": 1.96,
                    "change_percent": 1.03,
                },
                "bars": [
                    {
                        "time": "2024-05-31",
                        "open": 191.0,
                        "high": 193.1,
                        "low": 190.2,
                        "close": 192.25,
                        "volume": 48500000,
                    }
                ],
            }
        }
    )
