import functools
from typing import Callable, Optional, Type
from pydantic import BaseModel

from common.core.otel_axiom_exporter import get_logger
from .factory import get_cache_provider

logger = get_logger(__name__)


def cached(model_type: Type[BaseModel], key: Callable[..., str], ttl_seconds: int):
    """
    Read-through cache for an async method returning a pydantic model or None.

    key receives the method's arguments without self. None results are not
    cached. Cache errors are logged and the method runs as on a miss, so an
    unavailable cache only costs latency.
    """

    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            cache_key = key(*args, **kwargs)
            provider = get_cache_provider()

            try:
                hit = await provider.get(cache_key)
            except Exception as e:
                logger.warning(f"Cache read failed for {cache_key}: {e}")
                hit = None
            if hit is not None:
                return model_type.model_validate(hit)

            result: Optional[BaseModel] = await func(self, *args, **kwargs)
            if result is not None:
                try:
                    await provider.set(
                        cache_key, result.model_dump(mode="json"), ttl_seconds
                    )
                except Exception as e:
                    logger.warning(f"Cache write failed for {cache_key}: {e}")
            return result

        return wrapper

    return decorator
