"""
Per-tenant subscription lock.

Serializes every mutation of one tenant's subscription (transition requests,
event application, reconciliation writes). Waits are bounded: a busy lock
surfaces as ConflictError so the caller retries instead of queueing.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from common.core.config import settings
from common.core.exceptions import ConflictError
from common.core.otel_axiom_exporter import get_logger
from common.providers.locking.factory import get_lock_provider

logger = get_logger(__name__)


def subscription_lock_key(tenant_id: int) -> str:
    return f"subscription:tenant:{tenant_id}"


@asynccontextmanager
async def subscription_lock(
    tenant_id: int, wait_seconds: Optional[float] = None
) -> AsyncGenerator[str, None]:
    """
    Hold the tenant's subscription lock for the duration of the block.

    Raises:
        ConflictError: if the lock is not acquired within the wait window
    """
    lock_provider = get_lock_provider()
    resource_key = subscription_lock_key(tenant_id)
    if wait_seconds is None:
        wait_seconds = settings.subscription_lock_wait_seconds

    token = await lock_provider.acquire_within(
        resource_key,
        ttl_seconds=settings.subscription_lock_ttl_seconds,
        wait_seconds=wait_seconds,
    )
    if token is None:
        logger.info(
            f"Subscription lock busy for tenant {tenant_id}",
            extra={"tenant_id": tenant_id},
        )
        raise ConflictError(context={"tenant_id": tenant_id})

    try:
        yield token
    finally:
        released = await lock_provider.release(resource_key, token)
        if not released:
            logger.warning(
                f"Subscription lock for tenant {tenant_id} expired before release",
                extra={"tenant_id": tenant_id},
            )
