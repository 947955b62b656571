"""
Data Ingestion Service

CONTRACT:
    Input:  HistoryRequest
    Output: PriceHistory

RESPONSIBILITIES:
    - Fetch daily bars from Polygon.io (primary, when configured)
    - Fall back to Yahoo Finance
    - Normalize all data to standard schemas
    - Cache raw histories in Redis
    - Export histories and quotes as CSV

NO INDICATOR MATH - Pure data fetching and transformation.
"""

from app.services.data_ingestion.interface import DataIngestionServiceInterface
from app.services.data_ingestion.service import (
    DataIngestionService,
    get_data_ingestion_service,
)
from app.services.data_ingestion.csv_export import history_to_csv, quote_to_csv

__all__ = [
    "DataIngestionServiceInterface",
    "DataIngestionService",
    "get_data_ingestion_service",
    "history_to_csv",
    "quote_to_csv",
]
