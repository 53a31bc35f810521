from abc import ABC, abstractmethod
from typing import Any, Optional


class CacheInterface(ABC):
    """
    Key/value cache for JSON-compatible values.

    The cache is never the source of truth: writers delete keys after
    committing, and a miss always falls back to the database.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Cached value, or None on a miss."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Drop a key. True if it was present."""
