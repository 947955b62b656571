"""
Data Ingestion Service Interface

Defines the contract for the data ingestion layer, plus the normalization
helpers shared by every provider adapter.
"""

from abc import abstractmethod
from datetime import date
from typing import Optional, Sequence

from app.services.base import BaseService
from app.schemas.market import Bar, HistoryRequest, PriceHistory, StockQuote


class DataIngestionServiceInterface(BaseService[HistoryRequest, PriceHistory]):
    """
    Data Ingestion Service Contract.

    INPUT: HistoryRequest
        - symbol: Ticker to fetch
        - years: Calendar years of daily bars
        - use_cache: Whether a cached history may be served

    OUTPUT: PriceHistory
        - quote: Latest session summary
        - bars: Ascending daily bars

    RAISES:
        - SymbolNotFoundError: No provider has bars for the symbol
        - DataUnavailableError: Every provider failed
    """

    @property
    def name(self) -> str:
        return "DataIngestionService"

    @abstractmethod
    async def execute(self, input_data: HistoryRequest) -> PriceHistory:
        """Fetch and normalize a symbol's daily history."""
        pass

    @abstractmethod
    async def get_history(
        self, symbol: str, years: int = 1, use_cache: bool = True
    ) -> PriceHistory:
        """Convenience wrapper around execute()."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check connectivity to the data sources."""
        pass


# =============================================================================
# NORMALIZATION
# =============================================================================


def normalize_bar(
    time: date,
    open_: float,
    high: float,
    low: float,
    close: float,
    volume: float,
) -> Bar:
    """
    Build a Bar from raw provider values.

    Providers occasionally report an open or close just outside the high/low
    range (adjusted data); the range is widened to contain them.
    """
    return Bar(
        time=time,
        open=float(open_),
        high=float(max(high, open_, close)),
        low=float(min(low, open_, close)),
        close=float(close),
        volume=float(volume or 0),
    )


def build_quote(
    symbol: str, bars: Sequence[Bar], latest: Optional[Bar] = None
) -> StockQuote:
    """
    Latest-session quote.

    `latest` defaults to the last bar; the previous close is the last bar
    strictly before it (falling back to its own open).
    """
    latest = latest or bars[-1]
    earlier = [b for b in bars if b.time < latest.time]
    previous_close = earlier[-1].close if earlier else latest.open

    change = latest.close - previous_close
    change_percent = (change / previous_close * 100) if previous_close > 0 else 0.0

    return StockQuote(
        symbol=symbol,
        price=latest.close,
        open=latest.open,
        high=latest.high,
        low=latest.low,
        volume=latest.volume,
        latest_trading_day=latest.time,
        previous_close=previous_close,
        change=round(change, 2),
        change_percent=round(change_percent, 2),
    )


def years_ago(day: date, years: int) -> date:
    """Same calendar day `years` earlier (Feb 29 falls back to Feb 28)."""
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        return day.replace(year=day.year - years, day=28)
