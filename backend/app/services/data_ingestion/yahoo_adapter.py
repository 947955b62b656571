"""
Yahoo Finance Data Adapter

Fallback provider for daily history. US tickers are used as-is
(class shares like BRK.B map to BRK-B).
"""

import asyncio
import logging
import math
from datetime import date, datetime, timezone
from typing import Optional

import yfinance as yf

from app.core.config import settings
from app.schemas.market import Bar, PriceHistory
from app.services.base import ExternalAPIError, SymbolNotFoundError
from app.services.data_ingestion.interface import build_quote, normalize_bar, years_ago

logger = logging.getLogger(__name__)

SOURCE_NAME = "Yahoo Finance"

# yfinance accepts these period strings for daily bars
PERIOD_MAP = {
    1: "1y",
    2: "2y",
    3: "5y",
    4: "5y",
    5: "5y",
}


def get_yahoo_symbol(symbol: str) -> str:
    """Convert a ticker to Yahoo Finance format."""
    symbol = symbol.upper().strip()

    # Index symbols
    index_map = {
        "SPX": "^GSPC",
        "DJI": "^DJI",
        "NDX": "^NDX",
        "VIX": "^VIX",
    }
    if symbol in index_map:
        return index_map[symbol]

    return symbol.replace(".", "-")


def _download(yahoo_symbol: str, period: str):
    """Blocking yfinance call, run in an executor."""
    ticker = yf.Ticker(yahoo_symbol)
    return ticker.history(period=period, interval="1d", auto_adjust=False)


def _rows_to_bars(hist) -> list[Bar]:
    bars = []
    for idx, row in hist.iterrows():
        values = [row["Open"], row["High"], row["Low"], row["Close"]]
        # Half-filled rows appear for the current session and on halts
        if any(v is None or math.isnan(v) for v in values):
            continue
        volume = row["Volume"]
        if volume is None or math.isnan(volume):
            volume = 0
        bars.append(
            normalize_bar(
                idx.to_pydatetime().date(),
                float(row["Open"]),
                float(row["High"]),
                float(row["Low"]),
                float(row["Close"]),
                float(volume),
            )
        )
    return bars


async def fetch_yahoo_history(
    symbol: str,
    years: int = 1,
    limit: Optional[int] = None,
) -> PriceHistory:
    """
    Fetch daily history from Yahoo Finance.

    Args:
        symbol: Ticker (e.g., "AAPL")
        years: Calendar years of bars
        limit: Keep at most this many trailing bars

    Raises:
        ExternalAPIError: yfinance failed
        SymbolNotFoundError: No bars returned
    """
    symbol = symbol.upper().strip()
    yahoo_symbol = get_yahoo_symbol(symbol)
    period = PERIOD_MAP.get(years, "5y")
    limit = limit or settings.history_limit * years

    logger.info(f"Fetching {yahoo_symbol} from {SOURCE_NAME}...")

    loop = asyncio.get_running_loop()
    try:
        hist = await loop.run_in_executor(None, _download, yahoo_symbol, period)
    except Exception as e:
        raise ExternalAPIError(SOURCE_NAME, f"Error fetching {symbol}: {e}") from e

    if hist is None or hist.empty:
        raise SymbolNotFoundError(SOURCE_NAME, f"No data returned for {yahoo_symbol}")

    cutoff = years_ago(date.today(), years)
    bars = [b for b in _rows_to_bars(hist) if b.time >= cutoff][-limit:]
    if not bars:
        raise SymbolNotFoundError(SOURCE_NAME, f"No complete bars for {yahoo_symbol}")

    return PriceHistory(
        symbol=symbol,
        source=SOURCE_NAME,
        fetched_at=datetime.now(timezone.utc),
        quote=build_quote(symbol, bars),
        bars=bars,
    )


async def validate_symbol(symbol: str) -> bool:
    """Check if a symbol exists and has data."""
    loop = asyncio.get_running_loop()
    try:
        hist = await loop.run_in_executor(None, _download, get_yahoo_symbol(symbol), "5d")
        return not hist.empty
    except Exception:
        return False
