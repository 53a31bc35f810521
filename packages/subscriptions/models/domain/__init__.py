"""Domain models for subscriptions."""

from packages.subscriptions.models.domain.enums import (
    BillingInterval,
    ChangeMechanism,
    PaymentProvider,
    ScheduledChangeOrigin,
    SubscriptionStatus,
    TransitionDirection,
    TransitionKind,
    UsageMetric,
    WebhookEventStatus,
)
from packages.subscriptions.models.domain.plans import (
    CatalogSnapshot,
    OveragePolicy,
    Plan,
    PlanPrice,
)
from packages.subscriptions.models.domain.subscription import (
    ScheduledChange,
    Subscription,
    SubscriptionState,
)
from packages.subscriptions.models.domain.usage import (
    AllowanceCheck,
    UsageRecord,
    UsageSummary,
)

__all__ = [
    # Enums
    "BillingInterval",
    "ChangeMechanism",
    "PaymentProvider",
    "ScheduledChangeOrigin",
    "SubscriptionStatus",
    "TransitionDirection",
    "TransitionKind",
    "UsageMetric",
    "WebhookEventStatus",
    # Plans
    "CatalogSnapshot",
    "OveragePolicy",
    "Plan",
    "PlanPrice",
    # Subscription
    "ScheduledChange",
    "Subscription",
    "SubscriptionState",
    # Usage
    "AllowanceCheck",
    "UsageRecord",
    "UsageSummary",
]
