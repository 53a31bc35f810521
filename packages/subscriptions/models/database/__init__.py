"""Database models for subscriptions."""

from packages.subscriptions.models.database.subscription import SubscriptionEntity
from packages.subscriptions.models.database.usage import UsageRecordEntity
from packages.subscriptions.models.database.webhook_event import WebhookEventEntity

__all__ = [
    "SubscriptionEntity",
    "UsageRecordEntity",
    "WebhookEventEntity",
]
