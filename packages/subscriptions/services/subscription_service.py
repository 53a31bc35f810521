"""
Service for tenant subscriptions.

Reads go through the cache. Transition requests never write local state: they
validate, hand the decision to the schedule orchestrator, and let provider
notifications update the row.
"""

from typing import Optional

from common.core.config import settings
from common.core.exceptions import NotFoundError, ValidationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.providers.caching.decorators import cached
from common.providers.caching.factory import get_cache_provider
from packages.subscriptions.cache_keys import subscription_by_tenant_key
from packages.subscriptions.models.domain.enums import BillingInterval
from packages.subscriptions.models.domain.subscription import Subscription
from packages.subscriptions.models.domain.transitions import (
    RetractionResult,
    TransitionResult,
)
from packages.subscriptions.models.schemas.subscriptions import (
    SubscriptionStatusResponse,
)
from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.subscriptions.services.plan_catalog import get_plan_catalog
from packages.subscriptions.services.schedule_orchestrator import ScheduleOrchestrator
from packages.subscriptions.services.subscription_lock import subscription_lock
from packages.subscriptions.services.transition_validator import (
    allowed_targets,
    validate_transition,
)

logger = get_logger(__name__)


class SubscriptionService:
    """Service for subscription reads and plan transitions."""

    def __init__(self):
        self.subscription_repo = SubscriptionRepository()
        self.catalog = get_plan_catalog()
        self.orchestrator = ScheduleOrchestrator()

    @trace_span
    @cached(
        Subscription,
        key=subscription_by_tenant_key,
        ttl_seconds=settings.subscription_cache_ttl_seconds,
    )
    async def get_by_tenant_id(self, tenant_id: int) -> Optional[Subscription]:
        """Get subscription for a tenant. Cached; invalidated on every write."""
        return await self.subscription_repo.get_by_tenant_id(tenant_id)

    @trace_span
    async def get_status(self, tenant_id: int) -> SubscriptionStatusResponse:
        """Build the tenant's subscription view, falling back to the baseline plan."""
        subscription = await self.get_by_tenant_id(tenant_id)
        snapshot = self.catalog.snapshot

        if subscription is None or not subscription.is_provider_linked():
            plan_id = snapshot.baseline_plan_id
            targets = allowed_targets(snapshot, plan_id)
            return SubscriptionStatusResponse(
                tenant_id=tenant_id,
                plan_id=plan_id,
                status=subscription.status if subscription else None,
                allows_usage=True,
                is_baseline=True,
                upgrade_targets=targets["upgrade"],
                downgrade_targets=targets["downgrade"],
            )

        targets = allowed_targets(snapshot, subscription.plan_id)
        return SubscriptionStatusResponse(
            tenant_id=tenant_id,
            plan_id=subscription.plan_id,
            interval=subscription.interval,
            status=subscription.status,
            allows_usage=subscription.allows_usage(),
            is_baseline=False,
            cancel_at_period_end=subscription.cancel_at_period_end,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            scheduled_change=subscription.scheduled_change,
            upgrade_targets=targets["upgrade"],
            downgrade_targets=targets["downgrade"],
        )

    @trace_span
    async def request_transition(
        self,
        tenant_id: int,
        target_plan_id: str,
        target_interval: BillingInterval,
    ) -> TransitionResult:
        """
        Validate and realize a plan and/or interval change.

        The tenant lock is taken before the subscription is read so validation
        sees the same state the orchestrator acts on.

        Raises:
            ConflictError: another change for this tenant is in progress
            ValidationError: the transition is not allowed
            TransientProviderError / ProviderError: the provider call failed
        """
        logger.info(
            f"Transition requested for tenant {tenant_id} to {target_plan_id}/{target_interval.value}",
            extra={
                "tenant_id": tenant_id,
                "target_plan_id": target_plan_id,
                "target_interval": target_interval.value,
            },
        )

        async with subscription_lock(tenant_id):
            # Uncached read under the lock
            subscription = await self.subscription_repo.get_by_tenant_id(tenant_id)
            snapshot = self.catalog.snapshot

            if subscription is None or not subscription.is_provider_linked():
                baseline = snapshot.baseline_plan_id
                if target_plan_id == baseline:
                    raise ValidationError(
                        f"Tenant is already on plan '{baseline}'",
                        allowed_targets=allowed_targets(snapshot, baseline),
                        context={"tenant_id": tenant_id},
                    )
                raise ValidationError(
                    "A paid plan requires checkout; no provider subscription exists",
                    allowed_targets=allowed_targets(snapshot, baseline),
                    context={"tenant_id": tenant_id, "target_plan_id": target_plan_id},
                )

            if subscription.status.is_terminal():
                raise ValidationError(
                    f"Subscription is {subscription.status.value}; checkout required",
                    context={"tenant_id": tenant_id},
                )

            decision = validate_transition(
                snapshot,
                subscription.plan_id,
                subscription.interval,
                target_plan_id,
                target_interval,
            )

            result = await self.orchestrator.apply(
                subscription.provider_subscription_id, decision, snapshot
            )

        logger.info(
            f"Transition for tenant {tenant_id} accepted via {result.mechanism.value}",
            extra={
                "tenant_id": tenant_id,
                "kind": result.kind.value,
                "effective_at": result.effective_at.isoformat(),
            },
        )
        return result

    @trace_span
    async def cancel_scheduled_change(self, tenant_id: int) -> RetractionResult:
        """Retract whatever pending change the provider holds for the tenant."""
        async with subscription_lock(tenant_id):
            subscription = await self.subscription_repo.get_by_tenant_id(tenant_id)
            if subscription is None or not subscription.is_provider_linked():
                raise NotFoundError(
                    "No provider subscription for tenant",
                    context={"tenant_id": tenant_id},
                )

            result = await self.orchestrator.retract_pending_change(
                subscription.provider_subscription_id
            )

        logger.info(
            f"Retracted pending change for tenant {tenant_id}",
            extra={
                "tenant_id": tenant_id,
                "released_schedule_id": result.released_schedule_id,
                "cleared_cancel_at_period_end": result.cleared_cancel_at_period_end,
            },
        )
        return result

    async def invalidate_cache(self, tenant_id: int) -> None:
        await get_cache_provider().delete(subscription_by_tenant_key(tenant_id))
