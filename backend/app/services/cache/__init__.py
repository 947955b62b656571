"""
Cache module for the dashboard backend.

Provides Redis caching for raw price history.
"""

from app.services.cache.redis_client import (
    HistoryCache,
    get_history_cache,
    init_redis,
    close_redis,
)

__all__ = [
    "HistoryCache",
    "get_history_cache",
    "init_redis",
    "close_redis",
]
