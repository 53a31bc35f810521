from typing import Optional

from common.core.config import settings
from common.core.constants import ProviderBackend
from common.core.otel_axiom_exporter import get_logger

from .interface import CacheInterface
from .memory_cache import MemoryCache
from .redis_cache import RedisCache

logger = get_logger(__name__)

_cache_provider: Optional[CacheInterface] = None


def get_cache_provider() -> CacheInterface:
    """Process-wide cache provider for the configured backend."""
    global _cache_provider

    if _cache_provider is None:
        backend = settings.cache_provider
        _cache_provider = MemoryCache() if backend == ProviderBackend.MEMORY else RedisCache()
        logger.info(f"Using {backend.value} cache")

    return _cache_provider
