from fastapi import APIRouter

from api.v1.routes import (
    health,
)
from packages.subscriptions.routes import plans, subscriptions, usage, webhooks

api_router = APIRouter()

# Health check (no auth required)
api_router.include_router(health.router, prefix="/health", tags=["health"])

# Webhooks (no auth - signature verified internally)
api_router.include_router(webhooks.router, tags=["webhooks"])

# Plans (no auth - public pricing info)
api_router.include_router(plans.router, prefix="/plans", tags=["plans"])

# Tenant routes (auth enforced by the gateway in front of this service)
api_router.include_router(
    subscriptions.router, prefix="/subscriptions", tags=["subscriptions"]
)
api_router.include_router(usage.router, prefix="/usage", tags=["usage"])
