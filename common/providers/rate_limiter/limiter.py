"""Process-wide SlowAPI limiter."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from common.core.config import settings

# Limits are counted in shared storage so every API replica enforces the same
# budget. Usage-meter clients poll allowance checks, hence the burst limit.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["20/second", "600/minute"],
    storage_uri=settings.rate_limit_storage,
)
