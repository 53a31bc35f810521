import time
import uuid
from typing import NamedTuple, Optional

from .interface import DistributedLockInterface


class _Held(NamedTuple):
    token: str
    expires_at: float


class MemoryLock(DistributedLockInterface):
    """
    Process-local locks for a single API process, local dev and tests.

    Does not serialize across replicas.
    """

    def __init__(self):
        self._held: dict[str, _Held] = {}

    def _current(self, resource_key: str) -> Optional[_Held]:
        held = self._held.get(resource_key)
        if held is not None and time.monotonic() >= held.expires_at:
            del self._held[resource_key]
            return None
        return held

    async def acquire(self, resource_key: str, ttl_seconds: float) -> Optional[str]:
        if self._current(resource_key) is not None:
            return None
        token = uuid.uuid4().hex
        self._held[resource_key] = _Held(token, time.monotonic() + ttl_seconds)
        return token

    async def release(self, resource_key: str, token: str) -> bool:
        held = self._current(resource_key)
        if held is None or held.token != token:
            return False
        del self._held[resource_key]
        return True

    async def is_held(self, resource_key: str) -> bool:
        return self._current(resource_key) is not None
