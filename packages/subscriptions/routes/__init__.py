"""Subscription API routes."""

from packages.subscriptions.routes import plans, subscriptions, usage, webhooks

__all__ = ["plans", "subscriptions", "usage", "webhooks"]
