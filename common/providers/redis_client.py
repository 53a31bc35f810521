"""
Lazily connected Redis client shared by the lock and cache providers.
"""

from typing import Optional
import redis.asyncio as redis

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


class RedisConnection:
    """Owns one client; the first caller to need it opens it."""

    def __init__(self, purpose: str):
        self.purpose = purpose
        self._client: Optional[redis.Redis] = None

    def key(self, *parts: str) -> str:
        """Namespace a key by application and purpose."""
        return ":".join((settings.app_name, self.purpose, *parts))

    async def client(self) -> redis.Redis:
        if self._client is None:
            client = redis.from_url(
                settings.redis_connection_url, decode_responses=True
            )
            await client.ping()
            self._client = client
            logger.info(f"Redis {self.purpose} connection established")
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info(f"Redis {self.purpose} connection closed")
