# Shared pytest configuration and fixtures for all test types
import os

# Settings are read at import time, so configure before importing the app
os.environ["OTEL_EXPORTER_ENABLED"] = "false"
os.environ["LOCK_PROVIDER"] = "memory"
os.environ["CACHE_PROVIDER"] = "memory"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"
os.environ["SUBSCRIPTION_LOCK_WAIT_SECONDS"] = "0.1"
os.environ["PROVIDER_RETRY_BASE_DELAY_SECONDS"] = "0"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_PRICE_ID_STARTER_MONTH"] = "price_starter_month"
os.environ["STRIPE_PRICE_ID_STARTER_YEAR"] = "price_starter_year"
os.environ["STRIPE_PRICE_ID_PROFESSIONAL_MONTH"] = "price_professional_month"
os.environ["STRIPE_PRICE_ID_PROFESSIONAL_YEAR"] = "price_professional_year"
os.environ["STRIPE_PRICE_ID_BUSINESS_MONTH"] = "price_business_month"
os.environ["STRIPE_PRICE_ID_BUSINESS_YEAR"] = "price_business_year"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from slowapi import Limiter  # noqa: E402
from slowapi.util import get_remote_address  # noqa: E402
from unittest.mock import patch  # noqa: E402

# Create test limiter with no limits and in-memory storage
test_limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri="memory://",
)

# Patch the limiter before importing the app so decorators use test limiter
with patch("common.providers.rate_limiter.limiter.limiter", test_limiter):
    from api.main import app  # noqa: E402

from common.db.session import get_db  # noqa: E402
from common.db.base import Base  # noqa: E402
from packages.subscriptions.models.database import (  # noqa: E402,F401
    SubscriptionEntity,
    UsageRecordEntity,
    WebhookEventEntity,
)
from tests.factories.subscription_factory import SubscriptionFactory  # noqa: E402
from tests.fixtures.payment_provider import FakePaymentProvider  # noqa: E402

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine and initialize schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_connection(test_engine):
    """Create test connection with outer transaction for rollback isolation."""
    async with test_engine.connect() as connection:
        trans = await connection.begin()
        yield connection
        await trans.rollback()


@pytest_asyncio.fixture(scope="function")
async def test_session_factory(test_connection):
    """Create session factory bound to test connection.

    Using join_transaction_mode="create_savepoint" so nested transaction()
    calls create savepoints instead of real nested transactions.
    """
    return async_sessionmaker(
        bind=test_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest_asyncio.fixture(scope="function")
async def test_db(test_session_factory):
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function", autouse=True)
async def patch_lazy_sessions(test_session_factory, monkeypatch):
    """
    Patch session factories to use test database.

    This allows real transaction() and get_session() to run with proper
    commit/rollback/ContextVar semantics while using the test database.
    """
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", test_session_factory)


@pytest.fixture(autouse=True)
def reset_provider_singletons(monkeypatch):
    """Give every test fresh in-memory locks, cache, and catalog."""
    monkeypatch.setattr("common.providers.locking.factory._lock_provider", None)
    monkeypatch.setattr("common.providers.caching.factory._cache_provider", None)
    monkeypatch.setattr(
        "packages.subscriptions.services.plan_catalog._plan_catalog", None
    )
    monkeypatch.setattr(
        "packages.subscriptions.providers.payment.factory._payment_provider", None
    )


@pytest.fixture
def fake_payment_provider(monkeypatch):
    """Install an in-memory payment provider as the process-wide provider."""
    provider = FakePaymentProvider()
    monkeypatch.setattr(
        "packages.subscriptions.providers.payment.factory._payment_provider",
        provider,
    )
    return provider


@pytest.fixture
def subscription_factory(test_db):
    return SubscriptionFactory(test_db)


@pytest_asyncio.fixture(scope="function")
async def client(test_db: AsyncSession):
    """Create a test client."""

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
