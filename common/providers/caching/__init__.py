from .interface import CacheInterface
from .decorators import cached
from .factory import get_cache_provider

__all__ = ["CacheInterface", "cached", "get_cache_provider"]
