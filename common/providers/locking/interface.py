import asyncio
import time
from abc import ABC, abstractmethod
from typing import Optional


class DistributedLockInterface(ABC):
    """
    Expiring mutual-exclusion locks keyed by resource.

    Holders get an opaque token back from acquire(); release() only succeeds
    with the token of the current holder, so a holder whose lock expired and
    was re-acquired elsewhere cannot release the new holder's lock.
    """

    @abstractmethod
    async def acquire(self, resource_key: str, ttl_seconds: float) -> Optional[str]:
        """Take the lock without waiting. Returns the token, or None if held."""

    @abstractmethod
    async def release(self, resource_key: str, token: str) -> bool:
        """Release the lock. False if the token no longer holds it."""

    @abstractmethod
    async def is_held(self, resource_key: str) -> bool:
        pass

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def acquire_within(
        self,
        resource_key: str,
        ttl_seconds: float,
        wait_seconds: float,
        poll_interval_seconds: float = 0.05,
    ) -> Optional[str]:
        """Poll for the lock until wait_seconds have passed. None on timeout."""
        deadline = time.monotonic() + wait_seconds
        while True:
            token = await self.acquire(resource_key, ttl_seconds)
            if token is not None:
                return token
            if time.monotonic() >= deadline:
                return None
            await asyncio.sleep(poll_interval_seconds)
