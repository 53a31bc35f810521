"""
Async engine and session factory.

API processes keep a connection pool; workers run with NullPool
(DB_USE_NULLPOOL=true) because they issue one query at a time.
"""

import time
from uuid import uuid4

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


def _engine_options() -> dict:
    options = {
        "echo": settings.debug,
        "pool_pre_ping": True,
        # asyncpg caches prepared statements per connection; unique names keep
        # them from colliding behind pgbouncer
        "connect_args": {
            "prepared_statement_name_func": lambda: f"__asyncpg_{uuid4()}__",
        },
    }
    if settings.db_use_nullpool:
        options["poolclass"] = pool.NullPool
        logger.info("Database pooling disabled (worker mode)")
    else:
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_pool_overflow
        options["pool_recycle"] = 3600
        logger.info(
            f"Database pool size={settings.db_pool_size} overflow={settings.db_pool_overflow}"
        )
    return options


engine = create_async_engine(settings.async_database_url, **_engine_options())
AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_db():
    """Request-scoped session dependency. Commits when the request succeeds."""
    start = time.perf_counter()
    async with AsyncSessionLocal() as session:
        logger.debug(f"Session acquire: {(time.perf_counter() - start) * 1000:.2f}ms")
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error(f"Rolling back request session: {e}")
            await session.rollback()
            raise


async def dispose_engine() -> None:
    await engine.dispose()
    logger.info("Database engine disposed")
