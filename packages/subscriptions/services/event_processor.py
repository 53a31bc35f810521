"""
Applies provider notifications to local subscription state exactly once.

Flow per event:
1. claim the event id in the ledger (duplicate / in-flight short-circuit)
2. resolve the tenant, take its subscription lock, re-read the row
3. run the pure handler
4. write the new state (compare-and-swap) and complete the ledger row in
   one transaction
5. run side effects after commit. Cache and audit failures are only logged.
   A replacement subscription is part of the acknowledged work: the ledger
   row completes only once it is provisioned, and a failure rejects the
   event so the provider redelivers it
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from common.core.config import settings
from common.core.exceptions import ConflictError
from common.core.otel_axiom_exporter import get_logger, log_span_event, trace_span
from common.db.scoped import transaction
from common.providers.caching.factory import get_cache_provider
from packages.subscriptions.cache_keys import subscription_by_tenant_key
from packages.subscriptions.models.domain.enums import WebhookEventStatus
from packages.subscriptions.models.domain.provider_events import (
    ProviderEventBase,
    SubscriptionDeletedEvent,
    SubscriptionSyncEvent,
)
from packages.subscriptions.models.domain.side_effects import (
    InvalidateSubscriptionCache,
    ProvisionReplacementSubscription,
    RecordAudit,
)
from packages.subscriptions.models.domain.subscription import Subscription
from packages.subscriptions.models.domain.webhook_events import (
    ClaimOutcome,
    EventReason,
    EventResult,
    WebhookEvent,
)
from packages.subscriptions.providers.payment.factory import get_payment_provider
from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.subscriptions.repositories.webhook_event_repository import (
    WebhookEventRepository,
)
from packages.subscriptions.services.event_handlers import apply_event
from packages.subscriptions.services.plan_catalog import get_plan_catalog
from packages.subscriptions.services.subscription_lock import subscription_lock

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventProcessor:
    """Claims, applies, and acknowledges typed provider events."""

    def __init__(self):
        self.subscription_repo = SubscriptionRepository()
        self.webhook_event_repo = WebhookEventRepository()
        self.catalog = get_plan_catalog()
        self.payment_provider = get_payment_provider()

    @trace_span
    async def handle(self, event: ProviderEventBase) -> EventResult:
        """
        Process one event.

        Returns:
            Ack when the event is applied, a duplicate, or irrelevant.
            Reject when another delivery holds it, the tenant is busy, or
            processing failed; the transport should redeliver.
        """
        outcome, ledger_row = await self._claim(event)
        if outcome == ClaimOutcome.DUPLICATE:
            logger.info(
                f"Duplicate delivery of event {event.event_id}",
                extra={"event_id": event.event_id, "event_type": event.event_type},
            )
            return EventResult.ack(event.event_id, EventReason.DUPLICATE)
        if outcome == ClaimOutcome.IN_FLIGHT:
            return EventResult.reject(event.event_id, EventReason.IN_FLIGHT)

        try:
            return await self._process(event, ledger_row)
        except ConflictError as e:
            logger.info(
                f"Tenant busy while applying event {event.event_id}: {e.message}",
                extra={"event_id": event.event_id},
            )
            await self.webhook_event_repo.mark_failed(ledger_row.id, "busy")
            return EventResult.reject(event.event_id, EventReason.BUSY)
        except Exception as e:
            logger.error(
                f"Failed to apply event {event.event_id}: {str(e)}",
                extra={
                    "event_id": event.event_id,
                    "event_type": event.event_type,
                    "error": str(e),
                },
            )
            await self.webhook_event_repo.mark_failed(
                ledger_row.id, f"{type(e).__name__}: {e}"
            )
            return EventResult.reject(event.event_id, EventReason.FAILED)

    async def _claim(
        self, event: ProviderEventBase
    ) -> tuple[ClaimOutcome, Optional[WebhookEvent]]:
        now = _utcnow()
        row = await self.webhook_event_repo.insert_pending(
            event.event_id, event.event_type, now
        )
        if row is not None:
            return ClaimOutcome.CLAIMED, row

        existing = await self.webhook_event_repo.get_by_provider_event_id(
            event.event_id
        )
        if existing is None:
            return ClaimOutcome.IN_FLIGHT, None
        if existing.status == WebhookEventStatus.COMPLETED:
            return ClaimOutcome.DUPLICATE, existing

        timeout = timedelta(seconds=settings.webhook_pending_timeout_seconds)
        if existing.status == WebhookEventStatus.PENDING and (
            now - existing.claimed_at < timeout
        ):
            return ClaimOutcome.IN_FLIGHT, existing

        if await self.webhook_event_repo.reclaim(existing.id, existing.attempts, now):
            logger.info(
                f"Re-claimed event {event.event_id} (attempt {existing.attempts + 1})",
                extra={"event_id": event.event_id, "previous_status": existing.status},
            )
            return ClaimOutcome.CLAIMED, existing
        return ClaimOutcome.IN_FLIGHT, existing

    async def _resolve(self, event: ProviderEventBase) -> Optional[Subscription]:
        subscription = None
        if event.provider_subscription_id:
            subscription = await self.subscription_repo.get_by_provider_subscription_id(
                event.provider_subscription_id
            )
        if subscription is None and isinstance(event, SubscriptionDeletedEvent):
            # Redelivered deletion of a subscription the row already ended
            subscription = await self.subscription_repo.get_by_ended_subscription_id(
                event.provider_subscription_id
            )
        if (
            subscription is None
            and isinstance(event, SubscriptionSyncEvent)
            and event.tenant_id is not None
        ):
            subscription = await self.subscription_repo.get_by_tenant_id(
                event.tenant_id
            )
        return subscription

    async def _process(
        self, event: ProviderEventBase, ledger_row: WebhookEvent
    ) -> EventResult:
        subscription = await self._resolve(event)
        if subscription is None and not (
            isinstance(event, SubscriptionSyncEvent) and event.tenant_id is not None
        ):
            logger.info(
                f"Event {event.event_id} matches no known subscription",
                extra={
                    "event_id": event.event_id,
                    "subscription_id": event.provider_subscription_id,
                },
            )
            await self.webhook_event_repo.mark_completed(ledger_row.id, _utcnow())
            return EventResult.ack(event.event_id, EventReason.IGNORED)

        tenant_id = subscription.tenant_id if subscription else event.tenant_id

        async with subscription_lock(tenant_id):
            current = await self.subscription_repo.get_by_tenant_id(tenant_id)
            outcome = apply_event(
                event, current.state() if current else None, self.catalog.snapshot
            )
            provisions = [
                effect
                for effect in outcome.side_effects
                if isinstance(effect, ProvisionReplacementSubscription)
            ]

            async with transaction():
                if outcome.changed:
                    if current is None:
                        await self.subscription_repo.create_from_state(outcome.state)
                    else:
                        written = await self.subscription_repo.compare_and_swap(
                            current.id, current.version, outcome.state
                        )
                        if written is None:
                            raise ConflictError(
                                "Subscription changed concurrently",
                                context={"tenant_id": tenant_id},
                            )
                if not provisions:
                    await self.webhook_event_repo.mark_completed(
                        ledger_row.id, _utcnow()
                    )

        logger.info(
            f"Applied event {event.event_id} ({event.event_type})",
            extra={
                "event_id": event.event_id,
                "tenant_id": tenant_id,
                "changed": outcome.changed,
            },
        )

        await self._run_side_effects(
            [
                effect
                for effect in outcome.side_effects
                if not isinstance(effect, ProvisionReplacementSubscription)
            ],
            event,
        )
        for provision in provisions:
            await self._provision_replacement(provision)
        if provisions:
            await self.webhook_event_repo.mark_completed(ledger_row.id, _utcnow())
        return EventResult.ack(event.event_id)

    async def _provision_replacement(
        self, provision: ProvisionReplacementSubscription
    ) -> None:
        """Raises whatever the provider raises; the caller rejects the event."""
        created = await self.payment_provider.create_subscription(
            provision.customer_id,
            provision.price_id,
            provision.tenant_id,
            idempotency_key=f"replacement:{provision.previous_subscription_id}",
        )
        log_span_event(
            "Replacement subscription provisioned",
            {
                "tenant_id": provision.tenant_id,
                "previous_subscription_id": provision.previous_subscription_id,
                "provider_subscription_id": created.id,
                "plan_id": provision.target_plan_id,
            },
        )

    async def _run_side_effects(self, side_effects: list, event: ProviderEventBase):
        for effect in side_effects:
            try:
                if isinstance(effect, InvalidateSubscriptionCache):
                    await get_cache_provider().delete(
                        subscription_by_tenant_key(effect.tenant_id)
                    )
                elif isinstance(effect, RecordAudit):
                    log_span_event(
                        effect.message,
                        {"event_id": event.event_id, **effect.attributes},
                    )
            except Exception as e:
                logger.error(
                    f"Side effect {effect.kind} failed for event {event.event_id}: {e}",
                    extra={"event_id": event.event_id, "kind": effect.kind},
                )
