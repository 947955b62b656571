"""
Polygon.io Data Adapter

Fetches daily aggregates from Polygon.io:
- /v2/aggs/ticker/{symbol}/prev → latest session (quote)
- /v2/aggs/ticker/{symbol}/range/1/day/{from}/{to} → history
"""

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

import aiohttp

from app.core.config import settings
from app.schemas.market import Bar, PriceHistory
from app.services.base import ExternalAPIError, RateLimitError, SymbolNotFoundError
from app.services.data_ingestion.interface import build_quote, normalize_bar, years_ago

logger = logging.getLogger(__name__)

# Daily aggregate timestamps are midnight US/Eastern
EASTERN = ZoneInfo("America/New_York")

SOURCE_NAME = "Polygon.io"


def _bar_from_aggregate(item: dict[str, Any]) -> Bar:
    """Convert a Polygon aggregate ({t, o, h, l, c, v}) to a Bar."""
    day = datetime.fromtimestamp(item["t"] / 1000, tz=EASTERN).date()
    return normalize_bar(day, item["o"], item["h"], item["l"], item["c"], item.get("v", 0))


class PolygonClient:
    """
    Polygon.io REST client.

    A session is opened per fetch; the dashboard loads one symbol at a time.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key or settings.polygon_api_key
        self.base_url = (base_url or settings.polygon_base_url).rstrip("/")
        self.timeout = timeout or settings.provider_timeout_seconds

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _get(
        self,
        session: aiohttp.ClientSession,
        path: str,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """GET a Polygon endpoint and return its JSON body."""
        query = {**(params or {}), "apiKey": self.api_key}

        async with session.get(f"{self.base_url}{path}", params=query) as resp:
            if resp.status == 429:
                raise RateLimitError(SOURCE_NAME, "Rate limit exceeded", {"path": path})

            data = await resp.json(content_type=None)
            if resp.status >= 400 or data.get("status") == "ERROR":
                message = data.get("message") or data.get("error") or f"HTTP {resp.status}"
                raise ExternalAPIError(
                    SOURCE_NAME, message, {"path": path, "status": resp.status}
                )
            return data

    async def fetch_history(
        self,
        symbol: str,
        years: int = 1,
        limit: Optional[int] = None,
    ) -> PriceHistory:
        """
        Fetch the latest session plus `years` of daily bars.

        Raises:
            ExternalAPIError: Network failure or an error payload
            RateLimitError: HTTP 429
            SymbolNotFoundError: No bars for the symbol
        """
        if not self.is_configured:
            raise ExternalAPIError(SOURCE_NAME, "API key not configured")

        symbol = symbol.upper().strip()
        limit = limit or settings.history_limit * years
        to_date = date.today()
        from_date = years_ago(to_date, years)

        logger.info(f"Fetching {symbol} from {SOURCE_NAME} ({from_date} → {to_date})")

        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                prev = await self._get(
                    session,
                    f"/v2/aggs/ticker/{symbol}/prev",
                    {"adjusted": "true"},
                )
                ranged = await self._get(
                    session,
                    f"/v2/aggs/ticker/{symbol}/range/1/day/{from_date}/{to_date}",
                    {"adjusted": "true", "sort": "asc", "limit": limit},
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ExternalAPIError(SOURCE_NAME, f"Request failed: {e}") from e

        results = ranged.get("results") or []
        if not results:
            raise SymbolNotFoundError(SOURCE_NAME, f"No bars for {symbol}")

        bars = sorted((_bar_from_aggregate(item) for item in results), key=lambda b: b.time)

        prev_results = prev.get("results") or []
        latest = _bar_from_aggregate(prev_results[0]) if prev_results else None

        return PriceHistory(
            symbol=symbol,
            source=SOURCE_NAME,
            fetched_at=datetime.now(timezone.utc),
            quote=build_quote(symbol, bars, latest),
            bars=bars,
        )

    async def validate(self) -> bool:
        """Check the key works with a cheap request."""
        if not self.is_configured:
            return False
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                await self._get(session, "/v2/aggs/ticker/AAPL/prev")
            return True
        except Exception as e:
            logger.debug(f"{SOURCE_NAME} validation failed: {e}")
            return False


# Singleton instance
_polygon_client: Optional[PolygonClient] = None


def get_polygon_client() -> PolygonClient:
    """Get or create the Polygon client."""
    global _polygon_client
    if _polygon_client is None:
        _polygon_client = PolygonClient()
    return _polygon_client
