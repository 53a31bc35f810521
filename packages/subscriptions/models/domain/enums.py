"""
Subscription enums - strongly typed enumerations for lifecycle, plans, and usage.
"""

from enum import Enum
from typing import NamedTuple


class SubscriptionStatus(str, Enum):
    """
    Subscription lifecycle status.

    Flow: incomplete -> active <-> past_due -> canceled
          incomplete -> incomplete_expired
          trialing -> active

    Whether a status permits feature usage comes from the policy table below,
    never from comparisons against individual status names.
    """

    INCOMPLETE = "incomplete"  # Created, first payment not yet confirmed
    INCOMPLETE_EXPIRED = "incomplete_expired"  # First payment never confirmed
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"  # Payment failed, provider still retrying
    CANCELED = "canceled"

    @classmethod
    def from_provider_status(cls, value: str) -> "SubscriptionStatus":
        """Map a provider status string onto the local state machine."""
        if value in _PROVIDER_STATUS_ALIASES:
            return _PROVIDER_STATUS_ALIASES[value]
        return cls(value)

    def allows_usage(self) -> bool:
        """Check if this status allows feature usage."""
        return _STATUS_POLICY[self].allows_usage

    def is_terminal(self) -> bool:
        return _STATUS_POLICY[self].terminal

    def can_transition_to(self, target: "SubscriptionStatus") -> bool:
        """Check a single-step lifecycle transition. Staying put is always allowed."""
        return target == self or target in _ALLOWED_TRANSITIONS[self]

    def can_reach(self, target: "SubscriptionStatus") -> bool:
        """Check whether target is reachable through any sequence of transitions."""
        seen = {self}
        frontier = [self]
        while frontier:
            current = frontier.pop()
            if current == target:
                return True
            for nxt in _ALLOWED_TRANSITIONS[current]:
                if nxt not in seen:
                    seen.add(nxt)
                    frontier.append(nxt)
        return False


class StatusPolicy(NamedTuple):
    allows_usage: bool
    terminal: bool


_STATUS_POLICY = {
    SubscriptionStatus.INCOMPLETE: StatusPolicy(allows_usage=False, terminal=False),
    SubscriptionStatus.INCOMPLETE_EXPIRED: StatusPolicy(
        allows_usage=False, terminal=True
    ),
    SubscriptionStatus.TRIALING: StatusPolicy(allows_usage=True, terminal=False),
    SubscriptionStatus.ACTIVE: StatusPolicy(allows_usage=True, terminal=False),
    SubscriptionStatus.PAST_DUE: StatusPolicy(allows_usage=True, terminal=False),
    SubscriptionStatus.CANCELED: StatusPolicy(allows_usage=False, terminal=True),
}

_ALLOWED_TRANSITIONS = {
    SubscriptionStatus.INCOMPLETE: frozenset(
        {
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.INCOMPLETE_EXPIRED,
            SubscriptionStatus.CANCELED,
        }
    ),
    SubscriptionStatus.INCOMPLETE_EXPIRED: frozenset(),
    SubscriptionStatus.TRIALING: frozenset(
        {
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.PAST_DUE,
            SubscriptionStatus.CANCELED,
        }
    ),
    SubscriptionStatus.ACTIVE: frozenset(
        {SubscriptionStatus.PAST_DUE, SubscriptionStatus.CANCELED}
    ),
    SubscriptionStatus.PAST_DUE: frozenset(
        {SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELED}
    ),
    SubscriptionStatus.CANCELED: frozenset(),
}

# Provider statuses with no local counterpart
_PROVIDER_STATUS_ALIASES = {
    "unpaid": SubscriptionStatus.PAST_DUE,
    "paused": SubscriptionStatus.PAST_DUE,
}


class BillingInterval(str, Enum):
    """Recurring billing period unit."""

    MONTH = "month"
    YEAR = "year"


class TransitionKind(str, Enum):
    """Classification of a requested plan/interval change."""

    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"
    INTERVAL_ONLY = "interval_only"
    INVALID = "invalid"


class TransitionDirection(str, Enum):
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"


class ChangeMechanism(str, Enum):
    """How a transition is realized at the provider."""

    IMMEDIATE = "immediate"  # Price swap with proration
    SCHEDULE = "schedule"  # Two-phase provider schedule
    DEFERRED_CANCEL = "deferred_cancel"  # cancel_at_period_end flag (+ metadata)


class ScheduledChangeOrigin(str, Enum):
    """Which provider primitive encodes a pending change."""

    SCHEDULE = "schedule"
    CANCEL_AT_PERIOD_END = "cancel_at_period_end"


class UsageMetric(str, Enum):
    """Metered usage dimensions."""

    COMPUTE_MINUTES = "compute_minutes"
    API_REQUESTS = "api_requests"
    CONCURRENT_JOBS = "concurrent_jobs"

    def is_gauge(self) -> bool:
        """Gauge metrics are summed over all time from signed +1/-1 records."""
        return self == UsageMetric.CONCURRENT_JOBS


class WebhookEventStatus(str, Enum):
    """Idempotency ledger status."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentProvider(str, Enum):
    """Supported payment providers."""

    STRIPE = "stripe"
