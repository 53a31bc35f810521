import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.asgi import OpenTelemetryMiddleware

from common.core.config import settings
from common.core.constants import Environment
from common.core.otel_axiom_exporter import _initialize_telemetry, get_logger
from common.db.session import dispose_engine
from common.providers.rate_limiter.limiter import limiter
from api.exception_handlers import register_exception_handlers
from api.v1.routes.router import api_router
from packages.subscriptions.services.plan_catalog import get_plan_catalog

_initialize_telemetry()
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fail fast on an invalid catalog rather than on the first request
    snapshot = get_plan_catalog().snapshot
    logger.info(
        f"Starting {settings.app_name} with plan catalog version {snapshot.version}",
        extra={"plan_ids": ",".join(snapshot.plans)},
    )
    yield
    logger.info(f"Shutting down {settings.app_name}")
    await dispose_engine()


is_local = settings.environment == Environment.LOCAL

app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs" if is_local else None,
    redoc_url="/redoc" if is_local else None,
    openapi_url="/openapi.json" if is_local else None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_exception_handlers(app)
app.add_middleware(SlowAPIMiddleware)

FastAPIInstrumentor.instrument_app(app)
app.add_middleware(OpenTelemetryMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Tenant auth is enforced by the gateway in front of this service
app.include_router(api_router, prefix="/api/v1")


# Probe endpoint outside /api/v1, hit directly on pod IPs
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"status": "ok"}
