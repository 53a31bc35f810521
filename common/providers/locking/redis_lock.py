import uuid
from typing import Optional
import redis.asyncio as redis

from common.core.otel_axiom_exporter import get_logger
from common.providers.redis_client import RedisConnection
from .interface import DistributedLockInterface

logger = get_logger(__name__)

# Delete only if the caller still holds the lock
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RedisLock(DistributedLockInterface):
    """
    Locks shared by every replica through Redis SET NX PX.

    Redis errors are treated as "not acquired" so callers back off instead of
    mutating a subscription without the lock.
    """

    def __init__(self, connection: Optional[RedisConnection] = None):
        self._connection = connection or RedisConnection("lock")

    async def connect(self) -> None:
        await self._connection.client()

    async def close(self) -> None:
        await self._connection.close()

    async def acquire(self, resource_key: str, ttl_seconds: float) -> Optional[str]:
        token = str(uuid.uuid4())
        try:
            client = await self._connection.client()
            acquired = await client.set(
                self._connection.key(resource_key),
                token,
                nx=True,
                px=int(ttl_seconds * 1000),
            )
        except redis.RedisError as e:
            logger.error(f"Lock acquire failed for {resource_key}: {e}")
            return None
        return token if acquired else None

    async def release(self, resource_key: str, token: str) -> bool:
        try:
            client = await self._connection.client()
            released = await client.eval(
                RELEASE_SCRIPT, 1, self._connection.key(resource_key), token
            )
        except redis.RedisError as e:
            logger.error(f"Lock release failed for {resource_key}: {e}")
            return False
        if not released:
            logger.warning(f"Lock for {resource_key} was no longer held by this token")
        return bool(released)

    async def is_held(self, resource_key: str) -> bool:
        client = await self._connection.client()
        return bool(await client.exists(self._connection.key(resource_key)))
