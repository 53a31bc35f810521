from enum import Enum


class Environment(str, Enum):
    """Environment profiles."""

    LOCAL = "local"
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class ProviderBackend(str, Enum):
    """Backends for shared infrastructure providers (locks, cache)."""

    REDIS = "redis"
    MEMORY = "memory"
