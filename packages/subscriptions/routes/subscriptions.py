"""
Subscription API routes.

Tenant identity comes from the path; authentication is enforced upstream.
"""

from fastapi import APIRouter

from packages.subscriptions.models.domain.reconciliation import ReconciliationResult
from packages.subscriptions.models.domain.transitions import (
    RetractionResult,
    TransitionResult,
)
from packages.subscriptions.models.schemas.subscriptions import (
    SubscriptionStatusResponse,
    TransitionRequest,
)
from packages.subscriptions.services.reconciliation_service import (
    ReconciliationService,
)
from packages.subscriptions.services.subscription_service import SubscriptionService

router = APIRouter()


@router.get("/{tenant_id}", response_model=SubscriptionStatusResponse)
async def get_subscription(tenant_id: int):
    """
    Get the tenant's subscription.

    Tenants without a provider subscription are reported on the baseline plan.
    """
    return await SubscriptionService().get_status(tenant_id)


@router.post("/{tenant_id}/transitions", response_model=TransitionResult)
async def request_transition(tenant_id: int, request: TransitionRequest):
    """
    Move the tenant to another plan and/or billing interval.

    Upgrades apply immediately; downgrades and interval changes are scheduled
    for the end of the current period. Local state follows provider
    notifications.
    """
    return await SubscriptionService().request_transition(
        tenant_id, request.target_plan_id, request.target_interval
    )


@router.delete("/{tenant_id}/scheduled-change", response_model=RetractionResult)
async def cancel_scheduled_change(tenant_id: int):
    """Withdraw a pending downgrade or interval change."""
    return await SubscriptionService().cancel_scheduled_change(tenant_id)


@router.post("/{tenant_id}/reconcile", response_model=ReconciliationResult)
async def reconcile_subscription(tenant_id: int):
    """Copy provider-authoritative fields onto the tenant's subscription."""
    return await ReconciliationService().reconcile_tenant(tenant_id)
