import pytest
from unittest.mock import patch

from common.core.exceptions import TransientProviderError
from packages.subscriptions.models.domain.enums import SubscriptionStatus


@patch("common.core.otel_axiom_exporter.axiom_tracer.start_as_current_span")
class TestSubscriptionRoutes:
    """Test subscription endpoints and error rendering."""

    @pytest.mark.asyncio
    async def test_get_baseline_subscription(
        self, mock_start_span, client, fake_payment_provider
    ):
        response = await client.get("/api/v1/subscriptions/5")

        assert response.status_code == 200
        data = response.json()
        assert data["plan_id"] == "free"
        assert data["is_baseline"] is True
        assert data["allows_usage"] is True

    @pytest.mark.asyncio
    async def test_upgrade_request(
        self, mock_start_span, client, subscription_factory, fake_payment_provider
    ):
        await subscription_factory.create()
        fake_payment_provider.add_subscription()

        response = await client.post(
            "/api/v1/subscriptions/1/transitions",
            json={"target_plan_id": "professional", "target_interval": "month"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["kind"] == "upgrade"
        assert data["mechanism"] == "immediate"

    @pytest.mark.asyncio
    async def test_invalid_transition_returns_allowed_targets(
        self, mock_start_span, client, subscription_factory, fake_payment_provider
    ):
        await subscription_factory.create()

        response = await client.post(
            "/api/v1/subscriptions/1/transitions",
            json={"target_plan_id": "starter", "target_interval": "month"},
        )

        assert response.status_code == 422
        data = response.json()
        assert data["error_code"] == "validation_error"
        assert data["allowed_targets"]["downgrade"] == ["free"]

    @pytest.mark.asyncio
    async def test_provider_outage_is_retry_safe(
        self, mock_start_span, client, subscription_factory, fake_payment_provider
    ):
        await subscription_factory.create()
        fake_payment_provider.add_subscription()
        fake_payment_provider.fail_on["retrieve_subscription"] = TransientProviderError(
            "Stripe unavailable"
        )

        response = await client.post(
            "/api/v1/subscriptions/1/transitions",
            json={"target_plan_id": "business", "target_interval": "year"},
        )

        assert response.status_code == 503
        assert response.json()["retry_safe"] is True
        assert "retry-after" in response.headers

    @pytest.mark.asyncio
    async def test_cancel_scheduled_change(
        self, mock_start_span, client, subscription_factory, fake_payment_provider
    ):
        await subscription_factory.create()
        fake_payment_provider.add_subscription(schedule_id="sub_sched_9")

        response = await client.delete("/api/v1/subscriptions/1/scheduled-change")

        assert response.status_code == 200
        assert response.json()["released_schedule_id"] == "sub_sched_9"

    @pytest.mark.asyncio
    async def test_reconcile(
        self, mock_start_span, client, subscription_factory, fake_payment_provider
    ):
        subscription = await subscription_factory.create()
        fake_payment_provider.add_subscription(
            status=SubscriptionStatus.PAST_DUE,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
        )

        response = await client.post("/api/v1/subscriptions/1/reconcile")

        assert response.status_code == 200
        assert response.json()["fields"] == ["status"]

    @pytest.mark.asyncio
    async def test_reconcile_unknown_tenant(
        self, mock_start_span, client, fake_payment_provider
    ):
        response = await client.post("/api/v1/subscriptions/77/reconcile")

        assert response.status_code == 404
        assert response.json()["error_code"] == "not_found"


@patch("common.core.otel_axiom_exporter.axiom_tracer.start_as_current_span")
class TestPlanRoutes:
    @pytest.mark.asyncio
    async def test_list_plans(self, mock_start_span, client):
        response = await client.get("/api/v1/plans")

        assert response.status_code == 200
        data = response.json()
        assert data["baseline_plan_id"] == "free"
        assert {plan["id"] for plan in data["plans"]} == {
            "free",
            "starter",
            "professional",
            "business",
        }

    @pytest.mark.asyncio
    async def test_reload_bumps_version(self, mock_start_span, client):
        first = (await client.get("/api/v1/plans")).json()

        response = await client.post("/api/v1/plans/reload")

        assert response.json()["version"] == first["version"] + 1


@patch("common.core.otel_axiom_exporter.axiom_tracer.start_as_current_span")
class TestUsageRoutes:
    @pytest.mark.asyncio
    async def test_record_check_and_summarize(
        self, mock_start_span, client, subscription_factory, fake_payment_provider
    ):
        await subscription_factory.create()

        recorded = await client.post(
            "/api/v1/usage/1/records",
            json={"metric": "compute_minutes", "quantity": 1999},
        )
        allowance = await client.get(
            "/api/v1/usage/1/allowance",
            params={"metric": "compute_minutes", "quantity": 3},
        )
        summary = await client.get("/api/v1/usage/1")

        assert recorded.status_code == 201
        assert allowance.json()["overage_quantity"] == 2
        assert summary.json()["plan_id"] == "starter"

    @pytest.mark.asyncio
    async def test_negative_consumption_rejected(
        self, mock_start_span, client, fake_payment_provider
    ):
        response = await client.post(
            "/api/v1/usage/1/records",
            json={"metric": "compute_minutes", "quantity": -1},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_allowance_quantity_must_be_positive(
        self, mock_start_span, client, fake_payment_provider
    ):
        response = await client.get(
            "/api/v1/usage/1/allowance",
            params={"metric": "compute_minutes", "quantity": 0},
        )

        assert response.status_code == 422


class TestHealthRoutes:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/api/v1/health/")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_database_health(self, client):
        response = await client.get("/api/v1/health/db")

        assert response.json() == {"status": "healthy", "database": "connected"}

    @pytest.mark.asyncio
    async def test_provider_health(self, client, fake_payment_provider):
        response = await client.get("/api/v1/health/provider")

        assert response.json()["payment_provider"] == "reachable"
