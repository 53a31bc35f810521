"""
Typed provider notifications.

A closed set of variants, discriminated by kind. The webhook parser maps
provider payloads onto these and rejects everything else.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, Field

from packages.subscriptions.models.domain.enums import (
    BillingInterval,
    SubscriptionStatus,
)


class ProviderEventBase(BaseModel):
    event_id: str
    event_type: str
    occurred_at: datetime
    provider_subscription_id: Optional[str] = None
    tenant_id: Optional[int] = None

    class Config:
        frozen = True


class RenewalEvent(ProviderEventBase):
    """Period renewed / invoice paid. Carries the new period boundaries."""

    kind: Literal["renewal"] = "renewal"
    period_start: datetime
    period_end: datetime
    price_id: Optional[str] = None


class SubscriptionSyncEvent(ProviderEventBase):
    """Subscription created or updated at the provider."""

    kind: Literal["subscription_sync"] = "subscription_sync"
    status: SubscriptionStatus
    customer_id: Optional[str] = None
    price_id: Optional[str] = None
    period_start: datetime
    period_end: datetime
    cancel_at_period_end: bool = False
    schedule_id: Optional[str] = None
    scheduled_plan_id: Optional[str] = None
    scheduled_interval: Optional[BillingInterval] = None


class SubscriptionDeletedEvent(ProviderEventBase):
    kind: Literal["subscription_deleted"] = "subscription_deleted"
    ended_at: datetime


class SchedulePhase(BaseModel):
    price_id: str
    start: datetime
    end: Optional[datetime] = None

    class Config:
        frozen = True


class ScheduleDeclaredEvent(ProviderEventBase):
    """Schedule created or updated with its declared phases."""

    kind: Literal["schedule_declared"] = "schedule_declared"
    schedule_id: str
    phases: list[SchedulePhase]
    schedule_status: Optional[str] = None


class ScheduleReleasedEvent(ProviderEventBase):
    """Schedule released or canceled; the subscription no longer follows it."""

    kind: Literal["schedule_released"] = "schedule_released"
    schedule_id: str


ProviderEvent = Annotated[
    Union[
        RenewalEvent,
        SubscriptionSyncEvent,
        SubscriptionDeletedEvent,
        ScheduleDeclaredEvent,
        ScheduleReleasedEvent,
    ],
    Field(discriminator="kind"),
]


class ProviderSubscriptionSnapshot(BaseModel):
    """Authoritative provider view of a subscription, fetched on demand."""

    id: str
    customer_id: Optional[str] = None
    status: SubscriptionStatus
    price_id: Optional[str] = None
    cancel_at_period_end: bool = False
    current_period_start: datetime
    current_period_end: datetime
    schedule_id: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)
