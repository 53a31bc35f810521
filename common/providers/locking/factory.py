from typing import Optional

from common.core.config import settings
from common.core.constants import ProviderBackend
from common.core.otel_axiom_exporter import get_logger

from .interface import DistributedLockInterface
from .memory_lock import MemoryLock
from .redis_lock import RedisLock

logger = get_logger(__name__)

_lock_provider: Optional[DistributedLockInterface] = None


def get_lock_provider() -> DistributedLockInterface:
    """Process-wide lock provider for the configured backend."""
    global _lock_provider

    if _lock_provider is None:
        backend = settings.lock_provider
        _lock_provider = MemoryLock() if backend == ProviderBackend.MEMORY else RedisLock()
        logger.info(f"Using {backend.value} locks")

    return _lock_provider
