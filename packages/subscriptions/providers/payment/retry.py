"""
Bounded retry with exponential backoff for provider calls.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from common.core.config import settings
from common.core.exceptions import TransientProviderError
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def with_provider_retry(
    operation: Callable[[], Awaitable[T]],
    description: str,
    attempts: Optional[int] = None,
    base_delay_seconds: Optional[float] = None,
) -> T:
    """
    Run operation, retrying TransientProviderError with exponential backoff.

    Any other exception propagates immediately. After the last attempt the
    TransientProviderError is re-raised so callers can tell the user it is
    safe to retry.
    """
    attempts = attempts or settings.provider_retry_attempts
    if base_delay_seconds is None:
        base_delay_seconds = settings.provider_retry_base_delay_seconds

    attempt = 1
    while True:
        try:
            return await operation()
        except TransientProviderError as e:
            if attempt >= attempts:
                logger.error(
                    f"Provider call {description} failed after {attempt} attempts: {e}",
                    extra={"operation": description, "attempts": attempt},
                )
                raise
            delay = base_delay_seconds * (2 ** (attempt - 1))
            logger.warning(
                f"Provider call {description} failed (attempt {attempt}/{attempts}), retrying in {delay:.2f}s",
                extra={"operation": description, "attempt": attempt},
            )
            await asyncio.sleep(delay)
            attempt += 1
