"""
Redis cache client for daily price history.

Caches raw PriceHistory payloads so repeated chart loads skip the provider
round trip. Derived indicators are never cached.
"""

import json
import logging
import time
from typing import Optional, Dict, Tuple

import redis.asyncio as redis

from app.core.config import settings
from app.schemas.market import PriceHistory

logger = logging.getLogger(__name__)

# Global Redis connection pool
_redis_pool: Optional[redis.Redis] = None


async def init_redis() -> Optional[redis.Redis]:
    """
    Initialize Redis connection pool.
    Called on application startup.
    """
    global _redis_pool

    if _redis_pool is not None:
        return _redis_pool

    try:
        _redis_pool = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        # Test connection
        await _redis_pool.ping()
        logger.info(f"Redis connected: {settings.redis_url}")
        return _redis_pool
    except Exception as e:
        logger.warning(f"Redis connection failed: {e}. Using in-memory fallback.")
        _redis_pool = None
        return None


async def close_redis() -> None:
    """Close Redis connection pool."""
    global _redis_pool
    if _redis_pool:
        await _redis_pool.close()
        _redis_pool = None
        logger.info("Redis connection closed")


def get_redis() -> Optional[redis.Redis]:
    """Get the Redis connection pool."""
    return _redis_pool


class HistoryCache:
    """
    Time-expiring cache of price histories.

    Keys:
    - history:{symbol}:{years} → JSON PriceHistory, expires after `ttl` seconds

    Falls back to an in-process dict of (expires_at, payload) when Redis is
    unavailable or a call fails.
    """

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        ttl: Optional[int] = None,
    ):
        self._redis = redis_client
        self.ttl = ttl if ttl is not None else settings.cache_ttl_seconds
        self._memory_cache: Dict[str, Tuple[float, str]] = {}

    @property
    def redis(self) -> Optional[redis.Redis]:
        return self._redis or _redis_pool

    @staticmethod
    def key(symbol: str, years: int = 1) -> str:
        return f"history:{symbol.upper()}:{years}"

    def _memory_get(self, key: str) -> Optional[str]:
        """Fallback to memory cache, dropping expired entries."""
        entry = self._memory_cache.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if time.monotonic() >= expires_at:
            del self._memory_cache[key]
            return None
        return value

    def _memory_set(self, key: str, value: str) -> None:
        """Fallback to memory cache, purging expired entries first."""
        now = time.monotonic()
        expired = [k for k, (expires_at, _) in self._memory_cache.items() if now >= expires_at]
        for k in expired:
            del self._memory_cache[k]
        self._memory_cache[key] = (now + self.ttl, value)

    async def get_history(self, symbol: str, years: int = 1) -> Optional[PriceHistory]:
        """Get a cached history, None when missing or expired."""
        key = self.key(symbol, years)
        value: Optional[str] = None

        if self.redis:
            try:
                value = await self.redis.get(key)
            except Exception as e:
                logger.debug(f"Redis get_history failed: {e}")
                value = self._memory_get(key)
        else:
            value = self._memory_get(key)

        if not value:
            return None

        try:
            return PriceHistory.model_validate(json.loads(value))
        except ValueError as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

    async def set_history(self, history: PriceHistory, years: int = 1) -> bool:
        """Store a history under its symbol with the configured TTL."""
        key = self.key(history.symbol, years)
        value = history.model_dump_json()

        if self.redis:
            try:
                await self.redis.set(key, value, ex=self.ttl)
                return True
            except Exception as e:
                logger.debug(f"Redis set_history failed: {e}")

        # Fallback to memory
        self._memory_set(key, value)
        return True

    async def invalidate(self, symbol: str, years: int = 1) -> None:
        """Drop a cached history."""
        key = self.key(symbol, years)

        if self.redis:
            try:
                await self.redis.delete(key)
            except Exception as e:
                logger.debug(f"Redis invalidate failed: {e}")

        self._memory_cache.pop(key, None)


# Singleton instance
_history_cache: Optional[HistoryCache] = None


def get_history_cache() -> HistoryCache:
    """Get the history cache singleton."""
    global _history_cache
    if _history_cache is None:
        _history_cache = HistoryCache()
    return _history_cache
