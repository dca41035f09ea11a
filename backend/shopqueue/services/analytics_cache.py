import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

from shopqueue.core.cache import CacheService
from shopqueue.schemas.analytics import AnalyticsSnapshot

logger = logging.getLogger(__name__)


class AnalyticsCache(ABC):
    """
    Holds at most one analytics snapshot per shop.
    """
    @abstractmethod
    async def get(self, shop_id: str) -> Optional[AnalyticsSnapshot]:
        pass

    @abstractmethod
    async def put(self, shop_id: str, snapshot: AnalyticsSnapshot, ttl_seconds: int) -> None:
        pass

    @abstractmethod
    async def invalidate(self, shop_id: str) -> None:
        pass


class InMemoryAnalyticsCache(AnalyticsCache):
    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or datetime.utcnow
        self._snapshots: Dict[str, Tuple[AnalyticsSnapshot, datetime]] = {}

    async def get(self, shop_id: str) -> Optional[AnalyticsSnapshot]:
        item = self._snapshots.get(shop_id)
        if item is None:
            return None
        snapshot, expires_at = item
        if self.clock() >= expires_at:
            del self._snapshots[shop_id]
            return None
        return snapshot

    async def put(self, shop_id: str, snapshot: AnalyticsSnapshot, ttl_seconds: int) -> None:
        self._snapshots[shop_id] = (snapshot, self.clock() + timedelta(seconds=ttl_seconds))

    async def invalidate(self, shop_id: str) -> None:
        self._snapshots.pop(shop_id, None)


class RedisAnalyticsCache(AnalyticsCache):
    """
    Stores snapshots as JSON through CacheService.
    When Redis is unavailable every get is a miss and every put a no-op.
    """

    def __init__(self, cache_service: CacheService):
        self.cache_service = cache_service

    async def get(self, shop_id: str) -> Optional[AnalyticsSnapshot]:
        data = await self.cache_service.get_queue_analytics(shop_id)
        if data is None:
            return None
        return AnalyticsSnapshot.model_validate(data)

    async def put(self, shop_id: str, snapshot: AnalyticsSnapshot, ttl_seconds: int) -> None:
        stored = await self.cache_service.set_queue_analytics(
            shop_id, snapshot.model_dump(mode="json"), ttl=ttl_seconds
        )
        if not stored:
            logger.debug(f"Analytics snapshot for shop {shop_id} not cached")

    async def invalidate(self, shop_id: str) -> None:
        await self.cache_service.invalidate_queue_analytics(shop_id)
