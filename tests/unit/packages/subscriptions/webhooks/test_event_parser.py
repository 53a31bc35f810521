from datetime import datetime, timezone

import pytest

from common.core.exceptions import UnsupportedEventError
from packages.subscriptions.models.domain.enums import (
    BillingInterval,
    SubscriptionStatus,
)
from packages.subscriptions.models.domain.provider_events import (
    RenewalEvent,
    ScheduleDeclaredEvent,
    ScheduleReleasedEvent,
    SubscriptionDeletedEvent,
    SubscriptionSyncEvent,
)
from packages.subscriptions.models.domain.stripe_webhooks import StripeWebhookPayload
from packages.subscriptions.webhooks.event_parser import parse_stripe_event
from tests.fixtures.stripe_payloads import (
    PERIOD_END,
    PERIOD_START,
    event_payload,
    invoice_object,
    schedule_object,
    subscription_object,
)


def parse(event_type: str, obj: dict):
    return parse_stripe_event(
        StripeWebhookPayload.model_validate(event_payload(event_type, obj))
    )


def ts(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


class TestSubscriptionEvents:
    def test_subscription_updated(self):
        event = parse(
            "customer.subscription.updated",
            subscription_object(
                cancel_at_period_end=True,
                metadata={
                    "tenant_id": "42",
                    "scheduled_plan_id": "free",
                    "scheduled_interval": "month",
                },
            ),
        )

        assert isinstance(event, SubscriptionSyncEvent)
        assert event.event_id == "evt_test_1"
        assert event.tenant_id == 42
        assert event.status == SubscriptionStatus.ACTIVE
        assert event.price_id == "price_starter_month"
        assert event.period_start == ts(PERIOD_START)
        assert event.period_end == ts(PERIOD_END)
        assert event.cancel_at_period_end is True
        assert event.scheduled_plan_id == "free"
        assert event.scheduled_interval == BillingInterval.MONTH

    def test_provider_only_status_mapped(self):
        event = parse(
            "customer.subscription.updated", subscription_object(status="unpaid")
        )

        assert event.status == SubscriptionStatus.PAST_DUE

    def test_period_read_from_items_on_newer_api(self):
        obj = subscription_object(
            current_period_start=None,
            current_period_end=None,
            items={
                "data": [
                    {
                        "price": {"id": "price_business_year"},
                        "current_period_start": PERIOD_START,
                        "current_period_end": PERIOD_END,
                    }
                ]
            },
        )

        event = parse("customer.subscription.created", obj)

        assert event.period_end == ts(PERIOD_END)
        assert event.price_id == "price_business_year"

    def test_subscription_without_period_unsupported(self):
        obj = subscription_object(
            current_period_start=None, current_period_end=None, items={"data": []}
        )

        with pytest.raises(UnsupportedEventError):
            parse("customer.subscription.updated", obj)

    def test_cleared_metadata_and_bad_tenant(self):
        event = parse(
            "customer.subscription.updated",
            subscription_object(
                metadata={
                    "tenant_id": "tenant-abc",
                    "scheduled_plan_id": "",
                    "scheduled_interval": "",
                }
            ),
        )

        assert event.tenant_id is None
        assert event.scheduled_plan_id is None
        assert event.scheduled_interval is None

    def test_subscription_deleted(self):
        event = parse(
            "customer.subscription.deleted",
            subscription_object(status="canceled", ended_at=PERIOD_END),
        )

        assert isinstance(event, SubscriptionDeletedEvent)
        assert event.ended_at == ts(PERIOD_END)

    def test_deleted_without_end_uses_event_time(self):
        event = parse(
            "customer.subscription.deleted", subscription_object(status="canceled")
        )

        assert event.ended_at == event.occurred_at


class TestInvoiceEvents:
    def test_invoice_paid(self):
        event = parse("invoice.paid", invoice_object())

        assert isinstance(event, RenewalEvent)
        assert event.provider_subscription_id == "sub_test123"
        assert event.period_start == ts(PERIOD_END)
        assert event.price_id == "price_starter_month"

    def test_subscription_nested_under_parent(self):
        event = parse(
            "invoice.paid",
            invoice_object(
                subscription=None,
                parent={"subscription_details": {"subscription": "sub_nested"}},
            ),
        )

        assert event.provider_subscription_id == "sub_nested"


class TestScheduleEvents:
    def test_schedule_updated(self):
        event = parse("subscription_schedule.updated", schedule_object())

        assert isinstance(event, ScheduleDeclaredEvent)
        assert event.schedule_id == "sub_sched_1"
        assert [p.price_id for p in event.phases] == [
            "price_starter_month",
            "price_starter_year",
        ]
        assert event.phases[1].start == ts(PERIOD_END)
        assert event.phases[1].end is None
        assert event.schedule_status == "active"

    def test_schedule_updated_carries_released_status(self):
        event = parse(
            "subscription_schedule.updated", schedule_object(status="released")
        )

        assert isinstance(event, ScheduleDeclaredEvent)
        assert event.schedule_status == "released"

    def test_schedule_released(self):
        event = parse(
            "subscription_schedule.released",
            schedule_object(subscription=None, released_subscription="sub_test123"),
        )

        assert isinstance(event, ScheduleReleasedEvent)
        assert event.provider_subscription_id == "sub_test123"


def test_unknown_event_type_unsupported():
    with pytest.raises(UnsupportedEventError) as exc_info:
        parse("customer.created", {"id": "cus_1"})

    assert exc_info.value.context["event_type"] == "customer.created"
