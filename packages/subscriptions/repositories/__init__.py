"""Subscription repositories."""

from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.subscriptions.repositories.usage_repository import UsageRecordRepository
from packages.subscriptions.repositories.webhook_event_repository import (
    WebhookEventRepository,
)

__all__ = [
    "SubscriptionRepository",
    "UsageRecordRepository",
    "WebhookEventRepository",
]
