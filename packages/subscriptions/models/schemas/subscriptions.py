"""
API schemas for subscription and usage operations.

Request and response models for the subscription and usage endpoints.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from packages.subscriptions.models.domain.enums import (
    BillingInterval,
    SubscriptionStatus,
    UsageMetric,
)
from packages.subscriptions.models.domain.subscription import ScheduledChange


# ============================================================================
# Subscription Schemas
# ============================================================================


class SubscriptionStatusResponse(BaseModel):
    """Current subscription state for a tenant."""

    tenant_id: int
    plan_id: str
    interval: Optional[BillingInterval] = None
    status: Optional[SubscriptionStatus] = Field(
        default=None, description="Null when the tenant is on the implicit baseline plan"
    )
    allows_usage: bool = Field(..., description="Whether the tenant may use features")
    is_baseline: bool = Field(
        ..., description="True when no provider-backed subscription exists"
    )
    cancel_at_period_end: bool = False
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    scheduled_change: Optional[ScheduledChange] = None
    upgrade_targets: list[str] = Field(default_factory=list)
    downgrade_targets: list[str] = Field(default_factory=list)


class TransitionRequest(BaseModel):
    """Request to move a subscription to another plan and/or interval."""

    target_plan_id: str = Field(..., min_length=1, max_length=64)
    target_interval: BillingInterval


# ============================================================================
# Usage Schemas
# ============================================================================


class UsageRecordRequest(BaseModel):
    """Request to append a usage record."""

    metric: UsageMetric
    quantity: int = Field(..., description="Signed quantity; negative only for gauges")
    recorded_at: Optional[datetime] = Field(
        default=None, description="Defaults to now"
    )
    metadata: dict = Field(default_factory=dict)
