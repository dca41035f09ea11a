"""
Tests for CacheService - Redis cache operations, and the analytics caches built on it.
"""
import json
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from conftest import BASE_TIME, SHOP_ID, FakeClock
from shopqueue.core.cache import CacheService, QueueJSONEncoder
from shopqueue.schemas.analytics import (
    AnalyticsSnapshot,
    DateRange,
    HourlyStat,
    QueueAnalyticsSummary,
    QueuePeakHoursAnalytics,
    QueueServiceAnalytics,
    QueueTimeAnalytics,
)
from shopqueue.services.analytics_cache import InMemoryAnalyticsCache, RedisAnalyticsCache


def _snapshot(**overrides) -> AnalyticsSnapshot:
    values = dict(
        shop_id=SHOP_ID,
        date_range=DateRange(date_from="2024-03-01", date_to="2024-03-31"),
        computed_at=BASE_TIME,
        summary=QueueAnalyticsSummary(total_queues=4, completed_queues=3, completion_rate=75),
        time=QueueTimeAnalytics(average_wait_time=12, median_wait_time=10),
        peak_hours=QueuePeakHoursAnalytics(
            hourly_stats=[HourlyStat(hour=9, queue_count=4, average_wait_time=12, completion_rate=75)]
        ),
        services=QueueServiceAnalytics(),
    )
    values.update(overrides)
    return AnalyticsSnapshot(**values)


class TestQueueJSONEncoder:
    """Tests for QueueJSONEncoder."""

    def test_encode_decimal(self):
        encoded = json.dumps({"price": Decimal("150.50")}, cls=QueueJSONEncoder)
        assert encoded == '{"price": "150.50"}'

    def test_encode_datetime(self):
        encoded = json.dumps({"at": datetime(2024, 3, 4, 9, 30)}, cls=QueueJSONEncoder)
        assert encoded == '{"at": "2024-03-04T09:30:00"}'

    def test_unknown_type_still_fails(self):
        with pytest.raises(TypeError):
            json.dumps({"x": object()}, cls=QueueJSONEncoder)


class TestCacheServiceConnect:
    """Tests for CacheService connect method."""

    def test_init_default_state(self):
        cache = CacheService()
        assert cache._redis is None
        assert cache.connected is False
        assert cache._connection_attempted is False

    @pytest.mark.asyncio
    async def test_connect_success(self):
        cache = CacheService(redis_url="redis://localhost:6379/1")

        with patch('shopqueue.core.cache.redis.from_url') as mock_from_url:
            mock_redis = AsyncMock()
            mock_from_url.return_value = mock_redis

            result = await cache.connect()

            assert result is True
            assert cache.connected is True
            mock_from_url.assert_called_once()
            assert mock_from_url.call_args.args[0] == "redis://localhost:6379/1"

    @pytest.mark.asyncio
    async def test_connect_failure(self):
        cache = CacheService()

        with patch('shopqueue.core.cache.redis.from_url') as mock_from_url:
            mock_redis = AsyncMock()
            mock_redis.ping.side_effect = Exception("Connection refused")
            mock_from_url.return_value = mock_redis

            result = await cache.connect()

            assert result is False
            assert cache.connected is False
            assert cache._connection_attempted is True

    @pytest.mark.asyncio
    async def test_connect_only_attempted_once(self):
        cache = CacheService()
        cache._connection_attempted = True

        with patch('shopqueue.core.cache.redis.from_url') as mock_from_url:
            assert await cache.connect() is False
            mock_from_url.assert_not_called()

    @pytest.mark.asyncio
    async def test_close_connected(self):
        cache = CacheService()
        cache._redis = AsyncMock()
        cache._connected = True

        await cache.close()

        cache._redis.close.assert_called_once()
        assert cache.connected is False


class TestCacheServiceOperations:

    @pytest.mark.asyncio
    async def test_not_connected_is_noop(self):
        cache = CacheService()

        assert await cache.get("k") is None
        assert await cache.set("k", {"a": 1}) is False
        assert await cache.delete("k") is False

    @pytest.mark.asyncio
    async def test_get_decodes_json(self):
        cache = CacheService()
        cache._connected = True
        cache._redis = AsyncMock()
        cache._redis.get.return_value = '{"total_queues": 4}'

        assert await cache.get("k") == {"total_queues": 4}

    @pytest.mark.asyncio
    async def test_get_exception_is_a_miss(self):
        cache = CacheService()
        cache._connected = True
        cache._redis = AsyncMock()
        cache._redis.get.side_effect = Exception("Redis error")

        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_set_uses_ttl(self):
        cache = CacheService()
        cache._connected = True
        cache._redis = AsyncMock()

        result = await cache.set("k", {"price": Decimal("10.00")}, ttl=42)

        assert result is True
        cache._redis.setex.assert_called_once_with("k", 42, '{"price": "10.00"}')

    @pytest.mark.asyncio
    async def test_set_exception(self):
        cache = CacheService()
        cache._connected = True
        cache._redis = AsyncMock()
        cache._redis.setex.side_effect = Exception("OOM")

        assert await cache.set("k", {"a": 1}) is False

    @pytest.mark.asyncio
    async def test_queue_analytics_keys(self):
        cache = CacheService()
        cache._connected = True
        cache._redis = AsyncMock()

        await cache.set_queue_analytics(SHOP_ID, {"a": 1})
        await cache.invalidate_queue_analytics(SHOP_ID)

        cache._redis.setex.assert_called_once_with(f"queue_analytics:{SHOP_ID}", 300, '{"a": 1}')
        cache._redis.delete.assert_called_once_with(f"queue_analytics:{SHOP_ID}")


class TestRedisAnalyticsCache:

    @pytest.mark.asyncio
    async def test_round_trip_through_json(self):
        stored = {}
        cache_service = CacheService()
        cache_service._connected = True
        cache_service._redis = AsyncMock()
        cache_service._redis.setex.side_effect = lambda key, ttl, value: stored.__setitem__(key, value)
        cache_service._redis.get.side_effect = lambda key: stored.get(key)
        cache = RedisAnalyticsCache(cache_service)
        snapshot = _snapshot()

        await cache.put(SHOP_ID, snapshot, ttl_seconds=120)
        loaded = await cache.get(SHOP_ID)

        assert loaded == snapshot
        assert loaded.matches("2024-03-01", "2024-03-31", None, None)
        cache_service._redis.setex.assert_called_once()
        assert cache_service._redis.setex.call_args.args[1] == 120

    @pytest.mark.asyncio
    async def test_unavailable_redis_is_a_miss(self):
        cache = RedisAnalyticsCache(CacheService())

        await cache.put(SHOP_ID, _snapshot(), ttl_seconds=300)

        assert await cache.get(SHOP_ID) is None


class TestInMemoryAnalyticsCache:

    @pytest.mark.asyncio
    async def test_expires_after_ttl(self):
        clock = FakeClock(BASE_TIME)
        cache = InMemoryAnalyticsCache(clock=clock)
        snapshot = _snapshot()

        await cache.put(SHOP_ID, snapshot, ttl_seconds=300)
        assert await cache.get(SHOP_ID) is snapshot

        clock.advance(seconds=300)
        assert await cache.get(SHOP_ID) is None

    @pytest.mark.asyncio
    async def test_invalidate(self):
        cache = InMemoryAnalyticsCache()

        await cache.put(SHOP_ID, _snapshot(), ttl_seconds=300)
        await cache.invalidate(SHOP_ID)
        await cache.invalidate("never-cached")

        assert await cache.get(SHOP_ID) is None

    def test_snapshot_age(self):
        snapshot = _snapshot()
        assert snapshot.age_seconds(BASE_TIME + timedelta(minutes=2)) == 120
