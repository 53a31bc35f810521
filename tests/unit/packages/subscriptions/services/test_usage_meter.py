from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import patch

from common.core.exceptions import ValidationError
from packages.subscriptions.models.domain.enums import UsageMetric
from packages.subscriptions.services.plan_catalog import PlanCatalog
from packages.subscriptions.services.usage_meter import (
    UsageMeter,
    calendar_month,
    evaluate_allowance,
)

COMPUTE = UsageMetric.COMPUTE_MINUTES
JOBS = UsageMetric.CONCURRENT_JOBS


class TestEvaluateAllowance:
    @pytest.fixture
    def starter(self):
        return PlanCatalog().lookup("starter")

    def test_within_limit(self, starter):
        check = evaluate_allowance(starter, COMPUTE, current_total=100, requested=5)

        assert check.allowed is True
        assert check.overage_quantity == 0
        assert check.reason is None

    def test_request_crossing_limit_bills_only_the_excess(self, starter):
        check = evaluate_allowance(starter, COMPUTE, current_total=1990, requested=20)

        assert check.allowed is True
        assert check.overage_quantity == 10
        assert check.estimated_overage_cost_cents == 20

    def test_already_over_limit_bills_whole_request(self, starter):
        check = evaluate_allowance(starter, COMPUTE, current_total=2100, requested=10)

        assert check.overage_quantity == 10

    def test_gauge_never_overage(self, starter):
        check = evaluate_allowance(starter, JOBS, current_total=2, requested=1)

        assert check.allowed is False
        assert check.reason == "limit_exceeded"

    def test_unlimited_metric(self):
        business = PlanCatalog().lookup("business")

        check = evaluate_allowance(
            business, UsageMetric.API_REQUESTS, current_total=10**9, requested=1
        )

        assert check.allowed is True
        assert check.limit is None

    def test_inactive_subscription_denied(self, starter):
        check = evaluate_allowance(
            starter, COMPUTE, current_total=0, requested=1, allows_usage=False
        )

        assert check.allowed is False
        assert check.reason == "subscription_inactive"


class TestCalendarMonth:
    def test_mid_year(self):
        start, end = calendar_month(datetime(2026, 6, 15, 12, tzinfo=timezone.utc))

        assert start == datetime(2026, 6, 1, tzinfo=timezone.utc)
        assert end == datetime(2026, 7, 1, tzinfo=timezone.utc)

    def test_december_rolls_year(self):
        start, end = calendar_month(datetime(2026, 12, 31, tzinfo=timezone.utc))

        assert start == datetime(2026, 12, 1, tzinfo=timezone.utc)
        assert end == datetime(2027, 1, 1, tzinfo=timezone.utc)


@patch("common.core.otel_axiom_exporter.axiom_tracer.start_as_current_span")
class TestUsageMeter:
    """Test metering against stored usage records."""

    @pytest.fixture
    def meter(self, fake_payment_provider):
        return UsageMeter()

    @pytest.mark.asyncio
    async def test_starter_overage_scenario(
        self, mock_start_span, meter, subscription_factory
    ):
        await subscription_factory.create(plan_id="starter")
        await meter.record(1, COMPUTE, 1950)
        await meter.record(1, COMPUTE, 60)

        check = await meter.check_allowance(1, COMPUTE, 1)

        assert check.allowed is True
        assert check.current_total == 2010
        assert check.overage_quantity == 1
        assert check.estimated_overage_cost_cents == 2
        assert check.reason == "overage"

    @pytest.mark.asyncio
    async def test_baseline_tenant_blocked_at_limit(self, mock_start_span, meter):
        await meter.record(7, COMPUTE, 100)

        check = await meter.check_allowance(7, COMPUTE, 1)

        assert check.allowed is False
        assert check.plan_id == "free"
        assert check.reason == "limit_exceeded"

    @pytest.mark.asyncio
    async def test_baseline_window_is_calendar_month(self, mock_start_span, meter):
        now = datetime.now(timezone.utc)
        start, end = calendar_month(now)
        await meter.record(7, COMPUTE, 40, recorded_at=start - timedelta(minutes=1))
        inside = await meter.record(7, COMPUTE, 10)

        plan, window = await meter.resolve_window(7)

        assert plan.id == "free"
        assert (window.period_start, window.period_end) == (start, end)
        assert inside.period_start == start
        assert await meter.current_total(7, COMPUTE) == 10

    @pytest.mark.asyncio
    async def test_usage_outside_period_not_counted(
        self, mock_start_span, meter, subscription_factory
    ):
        subscription = await subscription_factory.create()
        old = await meter.record(
            1,
            COMPUTE,
            500,
            recorded_at=subscription.current_period_start - timedelta(days=1),
        )
        await meter.record(1, COMPUTE, 5)

        assert old.period_start is None
        assert await meter.current_total(1, COMPUTE) == 5

    @pytest.mark.asyncio
    async def test_concurrent_jobs_gauge(
        self, mock_start_span, meter, subscription_factory
    ):
        subscription = await subscription_factory.create(plan_id="starter")
        # A job started before the current period still counts
        await meter.record(
            1,
            JOBS,
            1,
            recorded_at=subscription.current_period_start - timedelta(days=10),
        )
        await meter.track_job_started(1)

        denied = await meter.check_allowance(1, JOBS, 1)
        await meter.track_job_finished(1)
        allowed = await meter.check_allowance(1, JOBS, 1)

        assert denied.allowed is False
        assert denied.current_total == 2
        assert allowed.allowed is True
        assert allowed.current_total == 1

    @pytest.mark.asyncio
    async def test_inactive_subscription_denies_usage(
        self, mock_start_span, meter, subscription_factory
    ):
        await subscription_factory.create(status="incomplete")

        check = await meter.check_allowance(1, COMPUTE, 1)

        assert check.allowed is False
        assert check.reason == "subscription_inactive"

    @pytest.mark.asyncio
    async def test_invalid_quantities_rejected(self, mock_start_span, meter):
        with pytest.raises(ValidationError):
            await meter.record(1, COMPUTE, 0)
        with pytest.raises(ValidationError):
            await meter.record(1, COMPUTE, -5)
        with pytest.raises(ValidationError):
            await meter.check_allowance(1, COMPUTE, 0)

    @pytest.mark.asyncio
    async def test_usage_summary(self, mock_start_span, meter, subscription_factory):
        await subscription_factory.create(plan_id="starter")
        await meter.record(1, COMPUTE, 500)
        await meter.record(1, UsageMetric.API_REQUESTS, 25)

        summary = await meter.get_usage_summary(1)

        by_metric = {m.metric: m for m in summary.metrics}
        assert summary.plan_id == "starter"
        assert by_metric[COMPUTE].total == 500
        assert by_metric[COMPUTE].percentage_used == 25.0
        assert by_metric[COMPUTE].overage_enabled is True
        assert by_metric[JOBS].overage_enabled is False
        assert by_metric[UsageMetric.API_REQUESTS].total == 25
