"""
Domain models for Stripe webhook payloads.

Strongly-typed Pydantic models for the Stripe objects the engine reads.
Unknown fields are ignored; only what the event handlers need is declared.
"""

from typing import Optional, Any, Union
from enum import Enum
from pydantic import BaseModel, Field


class StripeWebhookType(str, Enum):
    """Stripe webhook event types the engine handles."""

    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"

    INVOICE_PAID = "invoice.paid"

    SCHEDULE_CREATED = "subscription_schedule.created"
    SCHEDULE_UPDATED = "subscription_schedule.updated"
    SCHEDULE_RELEASED = "subscription_schedule.released"
    SCHEDULE_CANCELED = "subscription_schedule.canceled"


class StripeMetadata(BaseModel):
    """Stripe metadata (tenant id plus deferred downgrade intent)."""

    tenant_id: Optional[str] = None
    scheduled_plan_id: Optional[str] = None
    scheduled_interval: Optional[str] = None


class StripePrice(BaseModel):
    id: str


class StripeSubscriptionItem(BaseModel):
    """Subscription item. Newer API versions carry the period here."""

    id: Optional[str] = None
    price: StripePrice
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None


class StripeSubscriptionItems(BaseModel):
    data: list[StripeSubscriptionItem] = Field(default_factory=list)


class StripeSubscriptionData(BaseModel):
    """Stripe subscription object."""

    id: str
    customer: Optional[str] = None
    status: str
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[int] = None
    ended_at: Optional[int] = None
    schedule: Optional[str] = None
    items: StripeSubscriptionItems = Field(default_factory=StripeSubscriptionItems)
    metadata: StripeMetadata = Field(default_factory=StripeMetadata)

    def price_id(self) -> Optional[str]:
        if self.items.data:
            return self.items.data[0].price.id
        return None

    def period(self) -> tuple[Optional[int], Optional[int]]:
        """Current period, falling back to the first item for newer API versions."""
        if self.current_period_start and self.current_period_end:
            return self.current_period_start, self.current_period_end
        if self.items.data:
            item = self.items.data[0]
            return item.current_period_start, item.current_period_end
        return None, None


class StripeInvoiceLinePeriod(BaseModel):
    start: int
    end: int


class StripeInvoiceLine(BaseModel):
    period: StripeInvoiceLinePeriod
    price: Optional[StripePrice] = None
    subscription: Optional[str] = None


class StripeInvoiceLines(BaseModel):
    data: list[StripeInvoiceLine] = Field(default_factory=list)


class StripeInvoiceData(BaseModel):
    """Stripe invoice object."""

    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    status: Optional[str] = None
    period_start: Optional[int] = None
    period_end: Optional[int] = None
    lines: StripeInvoiceLines = Field(default_factory=StripeInvoiceLines)
    parent: Optional[dict[str, Any]] = None

    def subscription_id(self) -> Optional[str]:
        """Subscription id, which newer API versions nest under parent."""
        if self.subscription:
            return self.subscription
        details = (self.parent or {}).get("subscription_details") or {}
        if details.get("subscription"):
            return details["subscription"]
        for line in self.lines.data:
            if line.subscription:
                return line.subscription
        return None

    def billing_period(self) -> tuple[Optional[int], Optional[int]]:
        """
        The service period the invoice pays for.

        Line periods describe the new period; the invoice-level fields are a
        fallback only.
        """
        if self.lines.data:
            start = min(line.period.start for line in self.lines.data)
            end = max(line.period.end for line in self.lines.data)
            return start, end
        return self.period_start, self.period_end


class StripeSchedulePhaseItem(BaseModel):
    price: Union[str, StripePrice]

    def price_id(self) -> str:
        return self.price if isinstance(self.price, str) else self.price.id


class StripeSchedulePhase(BaseModel):
    start_date: int
    end_date: Optional[int] = None
    items: list[StripeSchedulePhaseItem] = Field(default_factory=list)


class StripeScheduleData(BaseModel):
    """Stripe subscription schedule object."""

    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    released_subscription: Optional[str] = None
    status: Optional[str] = None
    phases: list[StripeSchedulePhase] = Field(default_factory=list)
    metadata: StripeMetadata = Field(default_factory=StripeMetadata)

    def subscription_id(self) -> Optional[str]:
        return self.subscription or self.released_subscription


class StripeEventData(BaseModel):
    """Stripe event data wrapper."""

    object: dict[str, Any]


class StripeWebhookPayload(BaseModel):
    """Complete Stripe webhook payload. type stays a raw string until parsed."""

    id: str
    type: str
    data: StripeEventData
    created: int
    livemode: bool = False
