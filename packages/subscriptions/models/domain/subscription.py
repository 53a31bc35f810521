"""
Domain models for subscriptions.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from packages.subscriptions.models.domain.enums import (
    BillingInterval,
    PaymentProvider,
    ScheduledChangeOrigin,
    SubscriptionStatus,
)


class ScheduledChange(BaseModel):
    """
    A recorded future plan/interval transition not yet applied.

    origin tells which provider primitive encodes it: a two-phase schedule
    (schedule_id set) or the cancel_at_period_end flag plus metadata.
    """

    target_plan_id: str
    target_interval: BillingInterval
    effective_at: datetime
    origin: ScheduledChangeOrigin
    schedule_id: Optional[str] = None

    class Config:
        frozen = True

    def has_landed(self, period_start: datetime) -> bool:
        """A change lands once a period starting at or after effective_at begins."""
        return self.effective_at <= period_start


class SubscriptionState(BaseModel):
    """
    The subscription fields owned by the event processor and reconciliation.

    Event handlers take a state and return a new one; they never mutate.
    """

    tenant_id: int
    plan_id: str
    interval: BillingInterval
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool = False
    provider_subscription_id: Optional[str] = None
    provider_customer_id: Optional[str] = None
    scheduled_change: Optional[ScheduledChange] = None
    last_event_at: Optional[datetime] = None
    # Provider subscription this tenant most recently ended; never re-adopted
    ended_subscription_id: Optional[str] = None
    # Most recent schedule release; older schedule declarations are stale
    released_schedule_id: Optional[str] = None
    schedule_released_at: Optional[datetime] = None

    class Config:
        frozen = True

    def allows_usage(self) -> bool:
        return self.status.allows_usage()

    def is_provider_linked(self) -> bool:
        return self.provider_subscription_id is not None


class Subscription(SubscriptionState):
    """
    Tenant subscription as persisted.

    version increments on every write and guards compare-and-swap updates.
    """

    id: int
    version: int
    payment_provider: PaymentProvider = PaymentProvider.STRIPE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        frozen = True

    def state(self) -> SubscriptionState:
        return SubscriptionState(
            **self.model_dump(include=set(SubscriptionState.model_fields))
        )
