"""
Pytest configuration and shared fixtures.

Provides bar builders and price-history fixtures for the indicator,
ingestion and API tests.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Sequence

import pytest

from app.schemas.market import Bar, PriceHistory
from app.services.data_ingestion.interface import build_quote


START_DATE = date(2024, 1, 2)


def build_bars(
    closes: Sequence[float],
    spread: float = 1.0,
    volume: float = 1000.0,
    start: date = START_DATE,
) -> list[Bar]:
    """Bars with open == close and high/low `spread` either side."""
    return [
        Bar(
            time=start + timedelta(days=i),
            open=close,
            high=close + spread,
            low=max(close - spread, 0.0),
            close=close,
            volume=volume,
        )
        for i, close in enumerate(closes)
    ]


def build_ohlc_bars(
    rows: Sequence[tuple],
    start: date = START_DATE,
    volume: float = 1000.0,
) -> list[Bar]:
    """Bars from (open, high, low, close[, volume]) tuples."""
    bars = []
    for i, row in enumerate(rows):
        open_, high, low, close = row[:4]
        bars.append(
            Bar(
                time=start + timedelta(days=i),
                open=open_,
                high=high,
                low=low,
                close=close,
                volume=row[4] if len(row) > 4 else volume,
            )
        )
    return bars


def build_history(bars: list[Bar], symbol: str = "TEST", source: str = "Test") -> PriceHistory:
    return PriceHistory(
        symbol=symbol,
        source=source,
        fetched_at=datetime(2024, 6, 3, 14, 30, tzinfo=timezone.utc),
        quote=build_quote(symbol, bars),
        bars=bars,
    )


@pytest.fixture
def make_bars():
    """Factory: make_bars(closes, spread=1.0, volume=1000.0)."""
    return build_bars


@pytest.fixture
def make_ohlc_bars():
    """Factory: make_ohlc_bars([(open, high, low, close[, volume]), ...])."""
    return build_ohlc_bars


@pytest.fixture
def make_history():
    """Factory: make_history(bars, symbol="TEST")."""
    return build_history


@pytest.fixture
def rising_bars() -> list[Bar]:
    """30 bars: close = 100 + i, high/low ±1, volume 1000."""
    return build_bars([100.0 + i for i in range(30)])


@pytest.fixture
def flat_bars() -> list[Bar]:
    """30 identical bars at 50."""
    return build_bars([50.0] * 30)


@pytest.fixture
def falling_bars() -> list[Bar]:
    """30 bars: close = 200 - i."""
    return build_bars([200.0 - i for i in range(30)])


@pytest.fixture
def sample_history(rising_bars) -> PriceHistory:
    return build_history(rising_bars)
