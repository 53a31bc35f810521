from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.core.constants import Environment, ProviderBackend


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment Profile
    environment: Environment = Environment.LOCAL

    # API Settings
    app_name: str = "plansync"
    api_version: str = "v1"
    debug: bool = False

    # Database Components
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "plansync"
    db_use_nullpool: bool = (
        False  # True for workers (sequential), False for API (concurrent)
    )
    db_pool_size: int = 10
    db_pool_overflow: int = 5

    @property
    def async_database_url(self) -> str:
        """asyncpg URL built from the DB_* components."""
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    @property
    def redis_connection_url(self) -> str:
        """Construct Redis URL from components."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        else:
            return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Provider backends for locks and cache (memory is single-process only)
    lock_provider: ProviderBackend = ProviderBackend.REDIS
    cache_provider: ProviderBackend = ProviderBackend.REDIS

    # Rate limiting (None = use redis_connection_url)
    rate_limit_storage_uri: Optional[str] = None

    # OpenTelemetry
    otel_service_name: str = "plansync"
    otel_service_version: str = "0.1.0"
    otel_exporter_enabled: bool = True

    # Axiom (OTLP over HTTP)
    axiom_endpoint: str = "https://api.axiom.co"
    axiom_token: str = ""
    axiom_dataset: str = ""

    # Billing - Stripe (payments)
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    # Stripe price IDs per plan and billing interval
    stripe_price_id_starter_month: str = ""
    stripe_price_id_starter_year: str = ""
    stripe_price_id_professional_month: str = ""
    stripe_price_id_professional_year: str = ""
    stripe_price_id_business_month: str = ""
    stripe_price_id_business_year: str = ""

    # Plan catalog
    baseline_plan_id: str = "free"
    plan_catalog_path: Optional[str] = None  # JSON file overriding built-in plans

    # Per-subscription serialization
    subscription_lock_ttl_seconds: int = 30
    subscription_lock_wait_seconds: float = 2.0

    # Idempotency ledger - pending rows older than this may be reclaimed
    webhook_pending_timeout_seconds: int = 300

    # Provider call retries (bounded exponential backoff)
    provider_retry_attempts: int = 3
    provider_retry_base_delay_seconds: float = 0.5

    # Reconciliation sweep
    reconciliation_sweep_interval_seconds: int = 900
    reconciliation_batch_size: int = 100

    subscription_cache_ttl_seconds: int = 300

    @property
    def rate_limit_storage(self) -> str:
        """Storage URI for slowapi limits."""
        return self.rate_limit_storage_uri or self.redis_connection_url

    @property
    def cors_allowed_origins(self) -> list[str]:
        """Auto-select CORS origins based on environment."""
        if self.environment == Environment.LOCAL:
            return [
                "http://localhost:3000",
                "http://localhost:3001",
            ]
        return []


settings = Settings()
