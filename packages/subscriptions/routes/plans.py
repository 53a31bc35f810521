"""
Plans API routes.

Public endpoint for the plan catalog, plus an operator reload.
"""

from fastapi import APIRouter

from packages.subscriptions.models.domain.plans import PlanInfo, PlansResponse
from packages.subscriptions.services.plan_catalog import get_plan_catalog

router = APIRouter()


def _to_response(snapshot) -> PlansResponse:
    return PlansResponse(
        version=snapshot.version,
        loaded_at=snapshot.loaded_at,
        baseline_plan_id=snapshot.baseline_plan_id,
        plans=[PlanInfo.from_plan(plan) for plan in snapshot.plans.values()],
    )


@router.get("", response_model=PlansResponse)
async def get_plans():
    """
    Get all available plans.

    Returns pricing, limits, overage policy, and allowed transitions for each
    plan. This endpoint is public (no auth required) for pricing pages.
    """
    return _to_response(get_plan_catalog().snapshot)


@router.post("/reload", response_model=PlansResponse)
async def reload_plans():
    """
    Reload the catalog from its configured source.

    A catalog that fails validation is rejected and the current one stays.
    """
    return _to_response(get_plan_catalog().reload())
