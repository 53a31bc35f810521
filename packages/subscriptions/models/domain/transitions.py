"""Domain models for plan/interval transition requests."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from packages.subscriptions.models.domain.enums import (
    BillingInterval,
    ChangeMechanism,
    TransitionKind,
)
from packages.subscriptions.models.domain.provider_events import (
    ProviderSubscriptionSnapshot,
)


class TransitionDecision(BaseModel):
    """A validated transition, computed fresh against one catalog snapshot."""

    kind: TransitionKind
    from_plan_id: str
    from_interval: BillingInterval
    to_plan_id: str
    to_interval: BillingInterval
    catalog_version: int

    @property
    def interval_changed(self) -> bool:
        return self.from_interval != self.to_interval


class TransitionResult(BaseModel):
    """
    Outcome of a transition request.

    Local state is untouched at this point; it follows once the provider
    confirms through notifications.
    """

    kind: TransitionKind
    mechanism: ChangeMechanism
    from_plan_id: str
    from_interval: BillingInterval
    to_plan_id: str
    to_interval: BillingInterval
    effective_at: datetime
    provider_reference: Optional[str] = None
    catalog_version: int


class RetractionResult(BaseModel):
    """What the cancel-first step removed at the provider."""

    released_schedule_id: Optional[str] = None
    cleared_cancel_at_period_end: bool = False
    snapshot: ProviderSubscriptionSnapshot

    @property
    def retracted(self) -> bool:
        return self.released_schedule_id is not None or self.cleared_cancel_at_period_end
