"""
Usage API routes.

Recording, allowance checks, and the per-period summary.
"""

from fastapi import APIRouter, Query, status

from packages.subscriptions.models.domain.enums import UsageMetric
from packages.subscriptions.models.domain.usage import (
    AllowanceCheck,
    UsageRecord,
    UsageSummary,
)
from packages.subscriptions.models.schemas.subscriptions import UsageRecordRequest
from packages.subscriptions.services.usage_meter import UsageMeter

router = APIRouter()


@router.post(
    "/{tenant_id}/records",
    response_model=UsageRecord,
    status_code=status.HTTP_201_CREATED,
)
async def record_usage(tenant_id: int, request: UsageRecordRequest):
    return await UsageMeter().record(
        tenant_id,
        request.metric,
        request.quantity,
        recorded_at=request.recorded_at,
        metadata=request.metadata,
    )


@router.get("/{tenant_id}/allowance", response_model=AllowanceCheck)
async def check_allowance(
    tenant_id: int,
    metric: UsageMetric,
    quantity: int = Query(default=1, ge=1),
):
    """
    Check whether the tenant may consume `quantity` more units.

    Usage above the limit is allowed and priced when the plan bills overage.
    """
    return await UsageMeter().check_allowance(tenant_id, metric, quantity)


@router.get("/{tenant_id}", response_model=UsageSummary)
async def get_usage_summary(tenant_id: int):
    """Totals and limits for every metric in the current billing window."""
    return await UsageMeter().get_usage_summary(tenant_id)
