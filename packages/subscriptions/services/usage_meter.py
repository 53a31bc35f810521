"""
Usage metering and allowance checks.

Consumption metrics (compute minutes, API requests) are summed over the
tenant's current billing window. Gauge metrics (concurrent jobs) are the
running sum of +1/-1 records over all time. Tenants without a provider
subscription are metered against the baseline plan over the calendar month.
"""

from datetime import datetime, timezone
from typing import Optional

from common.core.exceptions import ValidationError
from common.core.otel_axiom_exporter import get_logger, trace_span
from packages.subscriptions.models.domain.enums import UsageMetric
from packages.subscriptions.models.domain.plans import Plan
from packages.subscriptions.models.domain.usage import (
    AllowanceCheck,
    MetricUsage,
    UsageRecord,
    UsageRecordCreateModel,
    UsageSummary,
    UsageWindow,
)
from packages.subscriptions.repositories.usage_repository import (
    UsageRecordRepository,
)
from packages.subscriptions.services.plan_catalog import get_plan_catalog
from packages.subscriptions.services.subscription_service import SubscriptionService

logger = get_logger(__name__)


def calendar_month(at: datetime) -> tuple[datetime, datetime]:
    """[first instant of at's month, first instant of the next month) in UTC."""
    start = datetime(at.year, at.month, 1, tzinfo=timezone.utc)
    if at.month == 12:
        end = datetime(at.year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(at.year, at.month + 1, 1, tzinfo=timezone.utc)
    return start, end


def evaluate_allowance(
    plan: Plan,
    metric: UsageMetric,
    current_total: int,
    requested: int,
    allows_usage: bool = True,
) -> AllowanceCheck:
    """
    Decide whether `requested` more units fit the plan.

    Over the limit, consumption metrics on a plan with overage enabled are
    allowed and the part of this request above the limit is reported with its
    estimated cost. Gauge metrics are never billed as overage.
    """
    limit = plan.limit_for(metric)
    projected = current_total + requested
    check = dict(
        metric=metric,
        plan_id=plan.id,
        limit=limit,
        current_total=current_total,
        requested=requested,
        projected_total=projected,
    )

    if not allows_usage:
        return AllowanceCheck(allowed=False, reason="subscription_inactive", **check)

    if limit is None or projected <= limit:
        return AllowanceCheck(allowed=True, **check)

    if plan.overage.enabled and not metric.is_gauge():
        overage_quantity = min(requested, projected - max(limit, current_total))
        return AllowanceCheck(
            allowed=True,
            overage_quantity=overage_quantity,
            estimated_overage_cost_cents=overage_quantity
            * plan.overage.unit_price_cents,
            reason="overage",
            **check,
        )

    return AllowanceCheck(allowed=False, reason="limit_exceeded", **check)


class UsageMeter:
    """Records usage and answers allowance questions against the current plan."""

    def __init__(self):
        self.usage_repo = UsageRecordRepository()
        self.subscription_service = SubscriptionService()
        self.catalog = get_plan_catalog()

    @trace_span
    async def resolve_window(
        self, tenant_id: int, at: Optional[datetime] = None
    ) -> tuple[Plan, UsageWindow]:
        """The tenant's plan and the window its consumption is summed over."""
        at = at or datetime.now(timezone.utc)
        snapshot = self.catalog.snapshot
        subscription = await self.subscription_service.get_by_tenant_id(tenant_id)

        if subscription is None or not subscription.is_provider_linked():
            plan = snapshot.baseline_plan()
            start, end = calendar_month(at)
            return plan, UsageWindow(
                plan_id=plan.id, period_start=start, period_end=end
            )

        plan = snapshot.lookup(subscription.plan_id)
        return plan, UsageWindow(
            plan_id=plan.id,
            interval=subscription.interval,
            period_start=subscription.current_period_start,
            period_end=subscription.current_period_end,
            allows_usage=subscription.allows_usage(),
        )

    @trace_span
    async def record(
        self,
        tenant_id: int,
        metric: UsageMetric,
        quantity: int,
        recorded_at: Optional[datetime] = None,
        metadata: Optional[dict] = None,
    ) -> UsageRecord:
        """
        Append a usage record.

        Raises:
            ValidationError: zero quantity, or a negative one for a
                consumption metric
        """
        if quantity == 0:
            raise ValidationError("Usage quantity must be non-zero")
        if quantity < 0 and not metric.is_gauge():
            raise ValidationError(
                f"Negative quantity is only allowed for gauge metrics, not {metric.value}",
                context={"metric": metric.value},
            )

        recorded_at = recorded_at or datetime.now(timezone.utc)
        if recorded_at.tzinfo is None:
            recorded_at = recorded_at.replace(tzinfo=timezone.utc)
        _, window = await self.resolve_window(tenant_id, recorded_at)
        period_start = None
        if window.period_start <= recorded_at < window.period_end:
            period_start = window.period_start

        record = await self.usage_repo.create(
            UsageRecordCreateModel(
                tenant_id=tenant_id,
                metric=metric,
                quantity=quantity,
                recorded_at=recorded_at,
                period_start=period_start,
                record_metadata=metadata or {},
            )
        )

        logger.debug(
            f"Recorded {quantity} {metric.value} for tenant {tenant_id}",
            extra={"tenant_id": tenant_id, "metric": metric.value, "quantity": quantity},
        )
        return record

    @trace_span
    async def current_total(
        self,
        tenant_id: int,
        metric: UsageMetric,
        window: Optional[UsageWindow] = None,
    ) -> int:
        if metric.is_gauge():
            return await self.usage_repo.sum_quantity(tenant_id, metric)

        if window is None:
            _, window = await self.resolve_window(tenant_id)
        return await self.usage_repo.sum_quantity(
            tenant_id, metric, window.period_start, window.period_end
        )

    @trace_span
    async def check_allowance(
        self, tenant_id: int, metric: UsageMetric, requested: int = 1
    ) -> AllowanceCheck:
        if requested < 1:
            raise ValidationError("Requested quantity must be at least 1")

        plan, window = await self.resolve_window(tenant_id)
        total = await self.current_total(tenant_id, metric, window)
        check = evaluate_allowance(
            plan, metric, total, requested, allows_usage=window.allows_usage
        )

        if not check.allowed:
            logger.info(
                f"Denied {requested} {metric.value} for tenant {tenant_id}: {check.reason}",
                extra={
                    "tenant_id": tenant_id,
                    "metric": metric.value,
                    "current_total": total,
                    "limit": check.limit,
                },
            )
        return check

    async def track_job_started(
        self, tenant_id: int, metadata: Optional[dict] = None
    ) -> UsageRecord:
        return await self.record(
            tenant_id, UsageMetric.CONCURRENT_JOBS, 1, metadata=metadata
        )

    async def track_job_finished(
        self, tenant_id: int, metadata: Optional[dict] = None
    ) -> UsageRecord:
        return await self.record(
            tenant_id, UsageMetric.CONCURRENT_JOBS, -1, metadata=metadata
        )

    @trace_span
    async def get_usage_summary(self, tenant_id: int) -> UsageSummary:
        """Totals and limits for every metric in the current window."""
        plan, window = await self.resolve_window(tenant_id)
        metrics = []
        for metric in UsageMetric:
            total = await self.current_total(tenant_id, metric, window)
            limit = plan.limit_for(metric)
            metrics.append(
                MetricUsage(
                    metric=metric,
                    total=total,
                    limit=limit,
                    percentage_used=round(total / limit * 100, 2) if limit else None,
                    overage_enabled=plan.overage.enabled and not metric.is_gauge(),
                )
            )

        return UsageSummary(
            tenant_id=tenant_id,
            plan_id=plan.id,
            period_start=window.period_start,
            period_end=window.period_end,
            metrics=metrics,
        )
