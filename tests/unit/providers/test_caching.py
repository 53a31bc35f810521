import json

import pytest
from unittest.mock import AsyncMock, patch
from pydantic import BaseModel
import redis.asyncio as redis

from common.providers.caching import cached
from common.providers.caching.factory import get_cache_provider
from common.providers.caching.memory_cache import MemoryCache
from common.providers.caching.redis_cache import RedisCache
from common.providers.redis_client import RedisConnection


class CachedPlan(BaseModel):
    id: int
    name: str


class PlanReader:
    def __init__(self):
        self.calls = 0

    @cached(CachedPlan, key=lambda plan_id: f"plan:{plan_id}", ttl_seconds=60)
    async def get(self, plan_id: int):
        self.calls += 1
        if plan_id < 0:
            return None
        return CachedPlan(id=plan_id, name=f"plan_{plan_id}")


class TestCachedDecorator:
    async def test_second_read_is_served_from_cache(self):
        reader = PlanReader()

        first = await reader.get(1)
        second = await reader.get(1)

        assert second == first
        assert reader.calls == 1
        assert await get_cache_provider().get("plan:1") == {"id": 1, "name": "plan_1"}

    async def test_delete_invalidates(self):
        reader = PlanReader()
        await reader.get(7)

        await get_cache_provider().delete("plan:7")
        await reader.get(7)

        assert reader.calls == 2

    async def test_none_results_are_not_cached(self):
        reader = PlanReader()

        assert await reader.get(-1) is None
        assert await reader.get(-1) is None
        assert reader.calls == 2

    async def test_cache_failure_falls_through(self):
        reader = PlanReader()
        broken = AsyncMock()
        broken.get.side_effect = ConnectionError("cache down")
        broken.set.side_effect = ConnectionError("cache down")

        with patch(
            "common.providers.caching.decorators.get_cache_provider",
            return_value=broken,
        ):
            result = await reader.get(3)

        assert result.name == "plan_3"
        assert reader.calls == 1


class TestMemoryCache:
    async def test_set_get_delete(self):
        provider = MemoryCache()

        await provider.set("k", {"a": 1}, ttl_seconds=60)

        assert await provider.get("k") == {"a": 1}
        assert await provider.delete("k") is True
        assert await provider.delete("k") is False
        assert await provider.get("k") is None

    async def test_expired_entry_is_dropped(self):
        provider = MemoryCache()
        await provider.set("k", "v", ttl_seconds=60)

        with patch("common.providers.caching.memory_cache.time.monotonic") as mock_time:
            mock_time.return_value = 10**12
            assert await provider.get("k") is None

    def test_factory_uses_configured_backend(self):
        """Tests run with CACHE_PROVIDER=memory."""
        provider = get_cache_provider()
        assert isinstance(provider, MemoryCache)
        assert get_cache_provider() is provider


class TestRedisCache:
    @pytest.fixture
    def mock_redis_client(self):
        return AsyncMock(spec=redis.Redis)

    @pytest.fixture
    def redis_cache(self, mock_redis_client):
        connection = RedisConnection("cache")
        connection._client = mock_redis_client
        return RedisCache(connection)

    @patch("common.core.otel_axiom_exporter.axiom_tracer.start_as_current_span")
    async def test_values_round_trip_as_json(
        self, mock_start_span, redis_cache, mock_redis_client
    ):
        mock_redis_client.get = AsyncMock(return_value=json.dumps({"plan_id": "starter"}))

        await redis_cache.set("tenant:1:subscription", {"plan_id": "starter"}, 300)
        value = await redis_cache.get("tenant:1:subscription")

        mock_redis_client.set.assert_awaited_once_with(
            "plansync:cache:tenant:1:subscription", '{"plan_id": "starter"}', ex=300
        )
        assert value == {"plan_id": "starter"}

    @patch("common.core.otel_axiom_exporter.axiom_tracer.start_as_current_span")
    async def test_miss_returns_none(self, mock_start_span, redis_cache, mock_redis_client):
        mock_redis_client.get = AsyncMock(return_value=None)

        assert await redis_cache.get("missing") is None
