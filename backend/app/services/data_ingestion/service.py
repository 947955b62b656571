"""
Data Ingestion Service Implementation

Fetches and normalizes daily history with provider fallback.
Primary: Polygon.io (when an API key is configured)
Fallback: Yahoo Finance
Fresh histories are served from the history cache.
"""

from typing import Awaitable, Callable, Optional
import logging

from app.core.config import settings
from app.schemas.market import HistoryRequest, PriceHistory
from app.services.base import (
    DataUnavailableError,
    ServiceError,
    SymbolNotFoundError,
)
from app.services.cache.redis_client import HistoryCache, get_history_cache
from app.services.data_ingestion.interface import DataIngestionServiceInterface
from app.services.data_ingestion.polygon_adapter import get_polygon_client
from app.services.data_ingestion.yahoo_adapter import (
    SOURCE_NAME as YAHOO_SOURCE,
    fetch_yahoo_history,
    validate_symbol,
)

logger = logging.getLogger(__name__)

# (provider name, fetch(symbol, years) -> PriceHistory)
HistoryProvider = tuple[str, Callable[[str, int], Awaitable[PriceHistory]]]


def default_providers() -> list[HistoryProvider]:
    """Providers in fallback order for the current settings."""
    providers: list[HistoryProvider] = []

    polygon = get_polygon_client()
    if polygon.is_configured:
        providers.append(("Polygon.io", polygon.fetch_history))
    else:
        logger.debug("Polygon.io key not set, using Yahoo Finance only")

    providers.append((YAHOO_SOURCE, fetch_yahoo_history))
    return providers


class DataIngestionService(DataIngestionServiceInterface):
    """
    Data Ingestion Service.

    Tries each provider in order. If every provider reports the symbol
    unknown, SymbolNotFoundError is raised; any other combination of
    failures raises DataUnavailableError.
    """

    def __init__(
        self,
        providers: Optional[list[HistoryProvider]] = None,
        cache: Optional[HistoryCache] = None,
    ):
        self._providers = providers
        self._cache = cache

    @property
    def name(self) -> str:
        return "DataIngestionService"

    @property
    def providers(self) -> list[HistoryProvider]:
        if self._providers is None:
            return default_providers()
        return self._providers

    @property
    def cache(self) -> HistoryCache:
        return self._cache or get_history_cache()

    async def execute(self, input_data: HistoryRequest) -> PriceHistory:
        """Fetch a symbol's daily history, cache first."""
        symbol = input_data.symbol.upper().strip()
        years = input_data.years

        if input_data.use_cache:
            cached = await self.cache.get_history(symbol, years)
            if cached is not None:
                logger.debug(f"Cache hit for {symbol} ({years}y)")
                return cached

        history = await self._fetch(symbol, years)
        await self.cache.set_history(history, years)
        return history

    async def get_history(
        self, symbol: str, years: Optional[int] = None, use_cache: bool = True
    ) -> PriceHistory:
        """Convenience wrapper around execute()."""
        request = HistoryRequest(
            symbol=symbol,
            years=years or settings.history_years,
            use_cache=use_cache,
        )
        return await self.execute(request)

    async def _fetch(self, symbol: str, years: int) -> PriceHistory:
        errors: dict[str, str] = {}
        not_found = 0

        for source, fetch in self.providers:
            try:
                history = await fetch(symbol, years)
                logger.info(
                    f"Got {len(history.bars)} bars for {symbol} from {source}: "
                    f"${history.quote.price:.2f}"
                )
                return history
            except SymbolNotFoundError as e:
                logger.warning(f"{source} has no data for {symbol}: {e.message}")
                errors[source] = e.message
                not_found += 1
            except ServiceError as e:
                logger.warning(f"{source} failed for {symbol}: {e.message}")
                errors[source] = e.message
            except Exception as e:
                logger.error(f"Error fetching {symbol} from {source}: {e}")
                errors[source] = str(e)

        if errors and not_found == len(errors):
            raise SymbolNotFoundError(
                self.name, f"Symbol not found: {symbol}", {"providers": errors}
            )
        raise DataUnavailableError(
            self.name, f"All data providers failed for {symbol}", {"providers": errors}
        )

    async def health_check(self) -> bool:
        """Check connectivity to data sources."""
        polygon = get_polygon_client()
        if polygon.is_configured and await polygon.validate():
            return True
        return await validate_symbol("AAPL")


# Singleton instance
_service_instance: Optional[DataIngestionService] = None


def get_data_ingestion_service() -> DataIngestionService:
    """Get or create data ingestion service instance."""
    global _service_instance
    if _service_instance is None:
        _service_instance = DataIngestionService()
    return _service_instance
