"""
Maps verified Stripe payloads onto typed provider events.

Only the event types in StripeWebhookType are understood; anything else is
rejected with UnsupportedEventError so the caller can acknowledge and drop it.
"""

from datetime import datetime, timezone
from typing import Optional

from common.core.exceptions import UnsupportedEventError
from packages.subscriptions.models.domain.enums import (
    BillingInterval,
    SubscriptionStatus,
)
from packages.subscriptions.models.domain.provider_events import (
    ProviderEventBase,
    RenewalEvent,
    ScheduleDeclaredEvent,
    ScheduleReleasedEvent,
    SchedulePhase,
    SubscriptionDeletedEvent,
    SubscriptionSyncEvent,
)
from packages.subscriptions.models.domain.stripe_webhooks import (
    StripeInvoiceData,
    StripeMetadata,
    StripeScheduleData,
    StripeSubscriptionData,
    StripeWebhookPayload,
    StripeWebhookType,
)


def _ts(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _tenant_id(metadata: StripeMetadata) -> Optional[int]:
    if metadata.tenant_id and metadata.tenant_id.isdigit():
        return int(metadata.tenant_id)
    return None


def _scheduled_interval(metadata: StripeMetadata) -> Optional[BillingInterval]:
    try:
        return BillingInterval(metadata.scheduled_interval)
    except ValueError:
        return None


def _parse_subscription(
    payload: StripeWebhookPayload, event_type: StripeWebhookType
) -> ProviderEventBase:
    subscription = StripeSubscriptionData(**payload.data.object)
    common = dict(
        event_id=payload.id,
        event_type=payload.type,
        occurred_at=_ts(payload.created),
        provider_subscription_id=subscription.id,
        tenant_id=_tenant_id(subscription.metadata),
    )

    if event_type == StripeWebhookType.SUBSCRIPTION_DELETED:
        ended_at = subscription.ended_at or subscription.canceled_at or payload.created
        return SubscriptionDeletedEvent(ended_at=_ts(ended_at), **common)

    period_start, period_end = subscription.period()
    if period_start is None or period_end is None:
        raise UnsupportedEventError(
            "Subscription payload carries no current period",
            context={"event_id": payload.id},
        )

    return SubscriptionSyncEvent(
        status=SubscriptionStatus.from_provider_status(subscription.status),
        customer_id=subscription.customer,
        price_id=subscription.price_id(),
        period_start=_ts(period_start),
        period_end=_ts(period_end),
        cancel_at_period_end=subscription.cancel_at_period_end,
        schedule_id=subscription.schedule,
        scheduled_plan_id=subscription.metadata.scheduled_plan_id or None,
        scheduled_interval=_scheduled_interval(subscription.metadata),
        **common,
    )


def _parse_invoice(payload: StripeWebhookPayload) -> RenewalEvent:
    invoice = StripeInvoiceData(**payload.data.object)
    period_start, period_end = invoice.billing_period()
    if period_start is None or period_end is None:
        raise UnsupportedEventError(
            "Invoice payload carries no billing period",
            context={"event_id": payload.id},
        )

    price_id = None
    for line in invoice.lines.data:
        if line.price is not None:
            price_id = line.price.id
            break

    return RenewalEvent(
        event_id=payload.id,
        event_type=payload.type,
        occurred_at=_ts(payload.created),
        provider_subscription_id=invoice.subscription_id(),
        period_start=_ts(period_start),
        period_end=_ts(period_end),
        price_id=price_id,
    )


def _parse_schedule(
    payload: StripeWebhookPayload, event_type: StripeWebhookType
) -> ProviderEventBase:
    schedule = StripeScheduleData(**payload.data.object)
    common = dict(
        event_id=payload.id,
        event_type=payload.type,
        occurred_at=_ts(payload.created),
        provider_subscription_id=schedule.subscription_id(),
        tenant_id=_tenant_id(schedule.metadata),
        schedule_id=schedule.id,
    )

    if event_type in (
        StripeWebhookType.SCHEDULE_RELEASED,
        StripeWebhookType.SCHEDULE_CANCELED,
    ):
        return ScheduleReleasedEvent(**common)

    phases = [
        SchedulePhase(
            price_id=phase.items[0].price_id(),
            start=_ts(phase.start_date),
            end=_ts(phase.end_date) if phase.end_date else None,
        )
        for phase in schedule.phases
        if phase.items
    ]
    return ScheduleDeclaredEvent(
        phases=phases, schedule_status=schedule.status, **common
    )


def parse_stripe_event(payload: StripeWebhookPayload) -> ProviderEventBase:
    """
    Convert a Stripe webhook payload into a typed provider event.

    Raises:
        UnsupportedEventError: unknown event type or unusable payload
        pydantic.ValidationError: the object does not match its declared shape
    """
    try:
        event_type = StripeWebhookType(payload.type)
    except ValueError:
        raise UnsupportedEventError(
            f"Unsupported Stripe event type: {payload.type}",
            context={"event_id": payload.id, "event_type": payload.type},
        )

    if event_type in (
        StripeWebhookType.SUBSCRIPTION_CREATED,
        StripeWebhookType.SUBSCRIPTION_UPDATED,
        StripeWebhookType.SUBSCRIPTION_DELETED,
    ):
        return _parse_subscription(payload, event_type)
    if event_type == StripeWebhookType.INVOICE_PAID:
        return _parse_invoice(payload)
    return _parse_schedule(payload, event_type)
