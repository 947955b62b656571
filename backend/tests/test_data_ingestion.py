"""
Data ingestion tests

Provider fallback, caching, normalization and CSV export.
Providers are replaced with in-process fakes; nothing touches the network.
"""

from datetime import date

import pytest

from app.schemas.market import HistoryRequest
from app.services.base import (
    DataUnavailableError,
    ExternalAPIError,
    RateLimitError,
    SymbolNotFoundError,
)
from app.services.cache.redis_client import HistoryCache
from app.services.data_ingestion import DataIngestionService, history_to_csv, quote_to_csv
from app.services.data_ingestion.interface import build_quote, normalize_bar, years_ago
from app.services.data_ingestion.polygon_adapter import PolygonClient, _bar_from_aggregate


class FakeRedis:
    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value

    async def delete(self, key):
        self.store.pop(key, None)


def provider(name, history=None, error=None):
    """Build a (name, fetch) pair that counts its calls."""
    calls = []

    async def fetch(symbol, years):
        calls.append((symbol, years))
        if error is not None:
            raise error
        return history

    fetch.calls = calls
    return name, fetch


@pytest.fixture
def cache():
    return HistoryCache(redis_client=FakeRedis(), ttl=300)


class TestProviderFallback:
    """DataIngestionService provider ordering"""

    async def test_first_provider_wins(self, sample_history, cache):
        primary = provider("Primary", history=sample_history)
        fallback = provider("Fallback", history=sample_history)
        service = DataIngestionService(providers=[primary, fallback], cache=cache)

        result = await service.get_history("test")

        assert result == sample_history
        assert primary[1].calls == [("TEST", 1)]
        assert fallback[1].calls == []

    async def test_falls_back_on_error(self, sample_history, cache):
        failing = provider("Primary", error=ExternalAPIError("Primary", "HTTP 500"))
        fallback = provider("Fallback", history=sample_history)
        service = DataIngestionService(providers=[failing, fallback], cache=cache)

        assert await service.get_history("TEST") == sample_history
        assert len(fallback[1].calls) == 1

    async def test_falls_back_on_rate_limit(self, sample_history, cache):
        limited = provider("Primary", error=RateLimitError("Primary", "Rate limit exceeded"))
        fallback = provider("Fallback", history=sample_history)
        service = DataIngestionService(providers=[limited, fallback], cache=cache)

        assert await service.get_history("TEST") == sample_history

    async def test_unknown_everywhere_is_not_found(self, cache):
        service = DataIngestionService(
            providers=[
                provider("A", error=SymbolNotFoundError("A", "No bars")),
                provider("B", error=SymbolNotFoundError("B", "No bars")),
            ],
            cache=cache,
        )

        with pytest.raises(SymbolNotFoundError):
            await service.get_history("NOPE")

    async def test_mixed_failures_are_unavailable(self, cache):
        service = DataIngestionService(
            providers=[
                provider("A", error=SymbolNotFoundError("A", "No bars")),
                provider("B", error=RuntimeError("socket closed")),
            ],
            cache=cache,
        )

        with pytest.raises(DataUnavailableError) as exc_info:
            await service.get_history("TEST")

        assert set(exc_info.value.details["providers"]) == {"A", "B"}

    async def test_no_providers(self, cache):
        service = DataIngestionService(providers=[], cache=cache)

        with pytest.raises(DataUnavailableError):
            await service.get_history("TEST")


class TestCaching:
    """Histories are served from cache when fresh"""

    async def test_second_call_hits_cache(self, sample_history, cache):
        source = provider("Primary", history=sample_history)
        service = DataIngestionService(providers=[source], cache=cache)

        await service.get_history("TEST")
        await service.get_history("TEST")

        assert len(source[1].calls) == 1

    async def test_bypass_cache(self, sample_history, cache):
        source = provider("Primary", history=sample_history)
        service = DataIngestionService(providers=[source], cache=cache)

        await service.execute(HistoryRequest(symbol="TEST"))
        await service.execute(HistoryRequest(symbol="TEST", use_cache=False))

        assert len(source[1].calls) == 2


class TestNormalization:
    """Bar and quote normalization"""

    def test_normalize_bar_widens_range(self):
        bar = normalize_bar(date(2024, 1, 2), 10.5, 10.4, 9.0, 9.5, None)

        assert bar.high == 10.5
        assert bar.low == 9.0
        assert bar.volume == 0.0

    def test_build_quote(self, make_bars):
        bars = make_bars([100.0, 102.0, 101.0])

        quote = build_quote("TEST", bars)

        assert quote.price == 101.0
        assert quote.previous_close == 102.0
        assert quote.change == -1.0
        assert quote.change_percent == pytest.approx(-0.98)
        assert quote.latest_trading_day == bars[-1].time

    def test_build_quote_single_bar(self, make_bars):
        quote = build_quote("TEST", make_bars([50.0]))

        assert quote.previous_close == 50.0
        assert quote.change == 0.0

    def test_years_ago(self):
        assert years_ago(date(2024, 6, 3), 1) == date(2023, 6, 3)
        assert years_ago(date(2024, 2, 29), 1) == date(2023, 2, 28)

    def test_polygon_aggregate(self):
        # 2024-05-31 00:00 America/New_York
        bar = _bar_from_aggregate(
            {"t": 1717128000000, "o": 191.0, "h": 193.1, "l": 190.2, "c": 192.25, "v": 48500000}
        )

        assert bar.time == date(2024, 5, 31)
        assert bar.close == 192.25
        assert bar.volume == 48500000.0

    async def test_polygon_requires_key(self):
        client = PolygonClient()
        client.api_key = None

        with pytest.raises(ExternalAPIError, match="API key"):
            await client.fetch_history("AAPL")


class TestCsvExport:
    """CSV downloads"""

    def test_history_csv(self, make_history, make_ohlc_bars):
        history = make_history(make_ohlc_bars([(10, 12, 9, 11.5, 1500), (11.5, 13, 11, 12, 900)]))

        lines = history_to_csv(history).splitlines()

        assert lines[0] == "Date,Open,High,Low,Close,Volume"
        assert lines[1] == "2024-01-02,10,12,9,11.5,1500"
        assert lines[2] == "2024-01-03,11.5,13,11,12,900"

    def test_quote_csv(self, make_history, make_ohlc_bars):
        history = make_history(make_ohlc_bars([(10, 12, 9, 11.5, 1500), (11.5, 13, 11, 12, 900)]))

        lines = quote_to_csv(history.quote).splitlines()

        assert lines[0] == (
            "Symbol,Price,Open,High,Low,Volume,Latest Trading Day,"
            "Previous Close,Change,Change Percent"
        )
        assert lines[1] == "TEST,12,11.5,13,11,900,2024-01-03,11.5,0.50,4.35%"
