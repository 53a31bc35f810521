"""
Subscriptions package - plan transitions, provider event processing,
usage metering, and reconciliation.

This package integrates with:
- Stripe: authoritative subscription state, schedules, and webhooks

Local subscription state changes only in response to provider notifications
(EventProcessor) or explicit repair (ReconciliationService).
"""
