"""
Domain models for usage metering and allowance checks.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from packages.subscriptions.models.domain.enums import BillingInterval, UsageMetric


class UsageRecord(BaseModel):
    """
    One append-only usage record.

    quantity is signed: gauge metrics pair +1 on start with -1 on finish.
    """

    id: int
    tenant_id: int
    metric: UsageMetric
    quantity: int
    recorded_at: datetime
    period_start: Optional[datetime] = None
    record_metadata: dict = Field(default_factory=dict)

    class Config:
        from_attributes = True


class UsageRecordCreateModel(BaseModel):
    """Model for appending a usage record."""

    tenant_id: int
    metric: UsageMetric
    quantity: int
    recorded_at: datetime
    period_start: Optional[datetime] = None
    record_metadata: dict = Field(default_factory=dict)

    class Config:
        use_enum_values = True


class UsageWindow(BaseModel):
    """Aggregation window for a tenant's metered usage."""

    plan_id: str
    interval: Optional[BillingInterval] = None
    period_start: datetime
    period_end: datetime
    allows_usage: bool = True


class AllowanceCheck(BaseModel):
    """
    Result of an allowance check.

    limit is None when the plan does not cap the metric. Overage is reported,
    not blocked, when the plan bills it after the fact.
    """

    allowed: bool
    metric: UsageMetric
    plan_id: str
    limit: Optional[int] = None
    current_total: int
    requested: int
    projected_total: int
    overage_quantity: int = 0
    estimated_overage_cost_cents: int = 0
    reason: Optional[str] = None


class MetricUsage(BaseModel):
    """Usage of one metric in the current window."""

    metric: UsageMetric
    total: int
    limit: Optional[int] = None
    percentage_used: Optional[float] = None
    overage_enabled: bool = False


class UsageSummary(BaseModel):
    """Usage of every metric for a tenant in the current window."""

    tenant_id: int
    plan_id: str
    period_start: datetime
    period_end: datetime
    metrics: list[MetricUsage]
