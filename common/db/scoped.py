"""
Operation-scoped database sessions.

A session is held only for the database work itself, never while waiting on
the payment provider or a subscription lock.

    # One operation: acquire, commit, release
    async with get_session() as session:
        await session.execute(...)

    # Several operations that must commit together
    async with transaction():
        await repo_a.write(...)
        await repo_b.write(...)
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import get_logger
from common.db.session import AsyncSessionLocal
from common.db.context import (
    get_current_session,
    reset_current_session,
    set_current_session,
)

logger = get_logger(__name__)


@asynccontextmanager
async def transaction() -> AsyncGenerator[AsyncSession, None]:
    """
    Explicit transaction boundary.

    Repositories used inside the block share its session. Commits when the
    block exits normally, rolls back and re-raises otherwise.
    """
    start = time.perf_counter()
    async with AsyncSessionLocal() as session:
        logger.debug(
            f"Transaction session acquire: {(time.perf_counter() - start) * 1000:.2f}ms"
        )
        token = set_current_session(session)
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.warning(f"Transaction rolled back: {e}")
            await session.rollback()
            raise
        finally:
            reset_current_session(token)


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Session for a single operation.

    Inside transaction() this is the transaction's session and nothing is
    committed here. Otherwise a fresh session is committed on exit.
    """
    existing = get_current_session()
    if existing is not None:
        yield existing
        return

    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
