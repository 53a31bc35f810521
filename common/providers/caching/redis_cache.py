import json
from typing import Any, Optional

from common.core.otel_axiom_exporter import trace_span
from common.providers.redis_client import RedisConnection
from .interface import CacheInterface


class RedisCache(CacheInterface):
    """Cache shared by every replica. Values are stored as JSON strings."""

    def __init__(self, connection: Optional[RedisConnection] = None):
        self._connection = connection or RedisConnection("cache")

    @trace_span
    async def get(self, key: str) -> Optional[Any]:
        client = await self._connection.client()
        raw = await client.get(self._connection.key(key))
        return None if raw is None else json.loads(raw)

    @trace_span
    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        client = await self._connection.client()
        await client.set(
            self._connection.key(key), json.dumps(value, default=str), ex=ttl_seconds
        )

    @trace_span
    async def delete(self, key: str) -> bool:
        client = await self._connection.client()
        return bool(await client.delete(self._connection.key(key)))
