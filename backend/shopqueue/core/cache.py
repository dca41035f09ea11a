"""
Redis cache service for the queue engine.
Provides caching for:
- Queue analytics snapshots (5min TTL, keyed by shop)
"""
import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

import redis.asyncio as redis

from shopqueue.core.config import settings

logger = logging.getLogger(__name__)


class QueueJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and datetime values."""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        return super().default(obj)


class CacheService:
    """
    Redis-based cache service for the queue engine.
    Falls back gracefully if Redis is unavailable.
    """

    TTL_ANALYTICS = 300  # 5 minutes

    PREFIX_ANALYTICS = "queue_analytics"

    def __init__(self, redis_url: Optional[str] = None):
        self._redis_url = redis_url or settings.REDIS_URL
        self._redis: Optional[redis.Redis] = None
        self._connected = False
        self._connection_attempted = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> bool:
        """
        Initialize Redis connection.
        Returns True if connected, False otherwise.
        """
        if self._connection_attempted:
            return self._connected

        self._connection_attempted = True

        try:
            self._redis = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5
            )
            await self._redis.ping()
            self._connected = True
            logger.info(f"Connected to Redis at {self._redis_url}")
            return True
        except Exception as e:
            logger.warning(f"Redis connection failed: {e}. Caching disabled.")
            self._connected = False
            self._redis = None
            return False

    async def close(self):
        """Close Redis connection."""
        if self._redis:
            await self._redis.close()
            self._connected = False

    def _make_key(self, prefix: str, *parts: str) -> str:
        """Create a cache key from prefix and parts."""
        return f"{prefix}:{':'.join(str(p) for p in parts)}"

    async def get(self, key: str) -> Optional[Any]:
        """Get a value from cache."""
        if not self._connected:
            return None

        try:
            value = await self._redis.get(key)
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        """Set a value in cache with TTL."""
        if not self._connected:
            return False

        try:
            serialized = json.dumps(value, cls=QueueJSONEncoder)
            await self._redis.setex(key, ttl, serialized)
            return True
        except Exception as e:
            logger.warning(f"Cache set failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """Delete a key from cache."""
        if not self._connected:
            return False

        try:
            await self._redis.delete(key)
            return True
        except Exception as e:
            logger.warning(f"Cache delete failed for {key}: {e}")
            return False

    # ==================== Queue Analytics ====================

    async def get_queue_analytics(self, shop_id: str) -> Optional[dict]:
        """Get the cached analytics snapshot for a shop."""
        key = self._make_key(self.PREFIX_ANALYTICS, shop_id)
        return await self.get(key)

    async def set_queue_analytics(self, shop_id: str, snapshot: dict, ttl: Optional[int] = None) -> bool:
        """Cache an analytics snapshot for a shop (5min TTL by default)."""
        key = self._make_key(self.PREFIX_ANALYTICS, shop_id)
        return await self.set(key, snapshot, ttl or self.TTL_ANALYTICS)

    async def invalidate_queue_analytics(self, shop_id: str) -> bool:
        """Drop the cached analytics snapshot for a shop."""
        key = self._make_key(self.PREFIX_ANALYTICS, shop_id)
        return await self.delete(key)


# Global cache instance
_cache_instance: Optional[CacheService] = None


async def get_cache() -> CacheService:
    """Get the global cache instance, initializing if needed."""
    global _cache_instance
    if _cache_instance is None:
        _cache_instance = CacheService()
        await _cache_instance.connect()
    return _cache_instance


async def close_cache():
    """Close the global cache instance."""
    global _cache_instance
    if _cache_instance:
        await _cache_instance.close()
        _cache_instance = None
