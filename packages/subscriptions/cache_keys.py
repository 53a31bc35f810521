"""Cache key generators for subscriptions package."""


def subscription_by_tenant_key(tenant_id: int) -> str:
    """Generate cache key for subscription by tenant ID."""
    return f"tenant:{tenant_id}:subscription"
