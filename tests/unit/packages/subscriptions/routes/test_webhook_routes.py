import pytest
from unittest.mock import AsyncMock, patch

from packages.subscriptions.models.domain.webhook_events import (
    EventReason,
    EventResult,
)
from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)
from tests.fixtures.stripe_payloads import (
    encode,
    event_payload,
    sign_payload,
    subscription_object,
)

WEBHOOK_URL = "/api/v1/webhooks/stripe"


async def post_event(client, payload: dict, signature: str = None):
    body = encode(payload)
    headers = {"content-type": "application/json"}
    headers["stripe-signature"] = signature or sign_payload(body)
    return await client.post(WEBHOOK_URL, content=body, headers=headers)


@patch("common.core.otel_axiom_exporter.axiom_tracer.start_as_current_span")
class TestStripeWebhookRoute:
    """Test the HTTP contract Stripe relies on for redelivery."""

    @pytest.mark.asyncio
    async def test_missing_signature_rejected(self, mock_start_span, client):
        response = await client.post(
            WEBHOOK_URL,
            content=encode(event_payload("invoice.paid", {})),
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_bad_signature_rejected(self, mock_start_span, client):
        payload = event_payload(
            "customer.subscription.updated", subscription_object()
        )

        response = await post_event(
            client, payload, signature=sign_payload(encode(payload), secret="whsec_wrong")
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unhandled_event_type_acknowledged(self, mock_start_span, client):
        response = await post_event(
            client, event_payload("customer.created", {"id": "cus_1"})
        )

        assert response.status_code == 200
        assert response.json() == {"status": "ignored"}

    @pytest.mark.asyncio
    async def test_malformed_object_rejected(self, mock_start_span, client):
        obj = subscription_object()
        del obj["status"]

        response = await post_event(
            client, event_payload("customer.subscription.updated", obj)
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_subscription_created_and_duplicate(
        self, mock_start_span, client, fake_payment_provider
    ):
        payload = event_payload(
            "customer.subscription.created",
            subscription_object(metadata={"tenant_id": "12"}),
        )

        first = await post_event(client, payload)
        second = await post_event(client, payload)

        assert first.status_code == 200
        assert first.json() == {"status": "ok"}
        assert second.status_code == 200
        assert second.json() == {"status": "duplicate"}
        stored = await SubscriptionRepository().get_by_tenant_id(12)
        assert stored.plan_id == "starter"

    @pytest.mark.parametrize(
        "reason,status_code",
        [
            (EventReason.IN_FLIGHT, 429),
            (EventReason.BUSY, 429),
            (EventReason.FAILED, 503),
        ],
    )
    @pytest.mark.asyncio
    async def test_rejections_ask_for_redelivery(
        self, mock_start_span, client, fake_payment_provider, reason, status_code
    ):
        payload = event_payload(
            "customer.subscription.updated", subscription_object()
        )

        with patch(
            "packages.subscriptions.webhooks.stripe_webhook.EventProcessor.handle",
            new=AsyncMock(return_value=EventResult.reject("evt_test_1", reason)),
        ):
            response = await post_event(client, payload)

        assert response.status_code == status_code
        assert response.json() == {"status": reason.value}
