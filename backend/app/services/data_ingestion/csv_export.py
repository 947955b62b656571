"""
CSV export of price data for the dashboard's download buttons.
"""

import csv
import io

from app.schemas.market import PriceHistory, StockQuote


HISTORY_HEADER = ["Date", "Open", "High", "Low", "Close", "Volume"]

QUOTE_HEADER = [
    "Symbol",
    "Price",
    "Open",
    "High",
    "Low",
    "Volume",
    "Latest Trading Day",
    "Previous Close",
    "Change",
    "Change Percent",
]


def _number(value: float) -> str:
    # 150.0 -> "150", 150.25 -> "150.25"
    value = float(value)
    return str(int(value)) if value.is_integer() else repr(value)


def history_to_csv(history: PriceHistory) -> str:
    """One row per bar, oldest first."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(HISTORY_HEADER)
    for bar in history.bars:
        writer.writerow(
            [
                bar.time.isoformat(),
                _number(bar.open),
                _number(bar.high),
                _number(bar.low),
                _number(bar.close),
                _number(bar.volume),
            ]
        )
    return buffer.getvalue()


def quote_to_csv(quote: StockQuote) -> str:
    """Single-row latest price download."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(QUOTE_HEADER)
    writer.writerow(
        [
            quote.symbol,
            _number(quote.price),
            _number(quote.open),
            _number(quote.high),
            _number(quote.low),
            _number(quote.volume),
            quote.latest_trading_day.isoformat() if quote.latest_trading_day else "N/A",
            _number(quote.previous_close),
            f"{quote.change:.2f}",
            f"{quote.change_percent:.2f}%",
        ]
    )
    return buffer.getvalue()


def csv_filename(symbol: str, kind: str) -> str:
    """e.g. AAPL_historical_data.csv, AAPL_latest_price.csv"""
    return f"{symbol.upper()}_{kind}.csv"
