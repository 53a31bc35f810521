"""
Side effects produced by event handlers.

Handlers only describe these; the event processor runs them after the state
write has committed. A replacement subscription must be provisioned before
the event is acknowledged; the others are best effort.
"""

from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, Field

from packages.subscriptions.models.domain.enums import BillingInterval
from packages.subscriptions.models.domain.subscription import SubscriptionState


class InvalidateSubscriptionCache(BaseModel):
    kind: Literal["invalidate_cache"] = "invalidate_cache"
    tenant_id: int


class RecordAudit(BaseModel):
    kind: Literal["audit"] = "audit"
    message: str
    attributes: dict[str, Any] = Field(default_factory=dict)


class ProvisionReplacementSubscription(BaseModel):
    """Recreate a provider subscription on the target of a landed paid downgrade."""

    kind: Literal["provision_replacement"] = "provision_replacement"
    tenant_id: int
    customer_id: str
    price_id: str
    previous_subscription_id: str
    target_plan_id: str
    target_interval: BillingInterval


SideEffect = Annotated[
    Union[InvalidateSubscriptionCache, RecordAudit, ProvisionReplacementSubscription],
    Field(discriminator="kind"),
]


class HandlerOutcome(BaseModel):
    """New state plus the effects to run once it is committed."""

    state: Optional[SubscriptionState] = None
    side_effects: list[SideEffect] = Field(default_factory=list)
    changed: bool = False
