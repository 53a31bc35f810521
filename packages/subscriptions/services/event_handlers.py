"""
Pure event handlers.

Each handler takes a provider event, the current local state (None when the
tenant has no row yet) and a catalog snapshot, and returns the new state plus
the side effects to run after commit. Handlers never touch I/O, so every
ordering question can be tested without a database or provider.

Ordering rules:
- periods only move forward (a renewal for an older period is a no-op)
- status from a subscription-sync event older than the last applied one is skipped
- a scheduled change lands once a period starting at or after its effective
  time has begun, whichever of renewal or sync reveals that first
- an ended provider subscription is never adopted again
- a schedule declaration older than the latest schedule release is dropped
"""

from typing import Callable, Optional

from common.core.otel_axiom_exporter import get_logger
from packages.subscriptions.models.domain.enums import (
    BillingInterval,
    ScheduledChangeOrigin,
    SubscriptionStatus,
)
from packages.subscriptions.models.domain.plans import CatalogSnapshot
from packages.subscriptions.models.domain.provider_events import (
    RenewalEvent,
    ScheduleDeclaredEvent,
    ScheduleReleasedEvent,
    SubscriptionDeletedEvent,
    SubscriptionSyncEvent,
)
from packages.subscriptions.models.domain.side_effects import (
    HandlerOutcome,
    InvalidateSubscriptionCache,
    ProvisionReplacementSubscription,
    RecordAudit,
)
from packages.subscriptions.models.domain.subscription import (
    ScheduledChange,
    SubscriptionState,
)

logger = get_logger(__name__)

_FINISHED_SCHEDULE_STATUSES = ("released", "canceled", "completed")


def _outcome(
    original: Optional[SubscriptionState],
    state: Optional[SubscriptionState],
    message: str,
    extra_effects: Optional[list] = None,
) -> HandlerOutcome:
    """Wrap a new state, adding cache invalidation and an audit entry when it changed."""
    effects = list(extra_effects or [])
    changed = state is not None and state != original
    if changed:
        effects.insert(0, InvalidateSubscriptionCache(tenant_id=state.tenant_id))
        effects.append(
            RecordAudit(
                message=message,
                attributes={
                    "tenant_id": state.tenant_id,
                    "plan_id": state.plan_id,
                    "interval": state.interval.value,
                    "status": state.status.value,
                },
            )
        )
    return HandlerOutcome(state=state, side_effects=effects, changed=changed)


def _drift(state: SubscriptionState, message: str, **attributes) -> RecordAudit:
    logger.warning(message, extra={"tenant_id": state.tenant_id, **attributes})
    return RecordAudit(
        message=message, attributes={"tenant_id": state.tenant_id, **attributes}
    )


def land_scheduled_change(state: SubscriptionState) -> SubscriptionState:
    """Apply a schedule-backed change whose effective time has been reached."""
    change = state.scheduled_change
    if change is None or change.origin != ScheduledChangeOrigin.SCHEDULE:
        return state
    if not change.has_landed(state.current_period_start):
        return state
    return state.model_copy(
        update={
            "plan_id": change.target_plan_id,
            "interval": change.target_interval,
            "scheduled_change": None,
        }
    )


def handle_renewal(
    event: RenewalEvent, state: SubscriptionState, snapshot: CatalogSnapshot
) -> HandlerOutcome:
    """Advance the billing period and land any change due at its start."""
    updated = state
    if event.period_end > state.current_period_end:
        updated = state.model_copy(
            update={
                "current_period_start": event.period_start,
                "current_period_end": event.period_end,
            }
        )
    else:
        logger.debug(
            f"Renewal {event.event_id} does not advance the period",
            extra={"tenant_id": state.tenant_id, "event_id": event.event_id},
        )

    updated = land_scheduled_change(updated)
    return _outcome(state, updated, "Subscription period renewed")


def _deferred_cancel_change(
    event: SubscriptionSyncEvent,
    snapshot: CatalogSnapshot,
    interval: BillingInterval,
    effective_at,
) -> ScheduledChange:
    return ScheduledChange(
        target_plan_id=event.scheduled_plan_id or snapshot.baseline_plan_id,
        target_interval=event.scheduled_interval or interval,
        effective_at=effective_at,
        origin=ScheduledChangeOrigin.CANCEL_AT_PERIOD_END,
    )


def _new_state_from_sync(
    event: SubscriptionSyncEvent, snapshot: CatalogSnapshot, tenant_id: int
) -> SubscriptionState:
    if event.price_id:
        plan, interval = snapshot.find_by_price_id(event.price_id)
        plan_id = plan.id
    else:
        plan_id, interval = snapshot.baseline_plan_id, BillingInterval.MONTH

    scheduled_change = None
    if event.cancel_at_period_end:
        scheduled_change = _deferred_cancel_change(
            event, snapshot, interval, event.period_end
        )

    return land_scheduled_change(
        SubscriptionState(
            tenant_id=tenant_id,
            plan_id=plan_id,
            interval=interval,
            status=event.status,
            current_period_start=event.period_start,
            current_period_end=event.period_end,
            cancel_at_period_end=event.cancel_at_period_end,
            provider_subscription_id=event.provider_subscription_id,
            provider_customer_id=event.customer_id,
            scheduled_change=scheduled_change,
            last_event_at=event.occurred_at,
        )
    )


def handle_subscription_sync(
    event: SubscriptionSyncEvent,
    state: Optional[SubscriptionState],
    snapshot: CatalogSnapshot,
) -> HandlerOutcome:
    """
    Mirror a created/updated subscription onto local state.

    A row without a provider subscription adopts the event as a new lifecycle,
    unless the event is for the subscription the tenant just ended or was
    emitted before that ending.
    Events for a different provider subscription than the row tracks are
    ignored.

    Raises:
        UnknownPlanError: the event's price is not in the catalog
    """
    if state is None:
        if event.tenant_id is None:
            return HandlerOutcome()
        created = _new_state_from_sync(event, snapshot, event.tenant_id)
        return _outcome(None, created, "Subscription created from provider")

    if state.provider_subscription_id is None:
        if (
            state.ended_subscription_id is not None
            and event.provider_subscription_id == state.ended_subscription_id
        ):
            logger.info(
                f"Ignoring event {event.event_id} for an ended subscription",
                extra={"tenant_id": state.tenant_id, "event_id": event.event_id},
            )
            return HandlerOutcome(state=state)
        if state.last_event_at is not None and event.occurred_at < state.last_event_at:
            logger.info(
                f"Ignoring event {event.event_id} emitted before the last subscription ended",
                extra={"tenant_id": state.tenant_id, "event_id": event.event_id},
            )
            return HandlerOutcome(state=state)

        adopted = _new_state_from_sync(event, snapshot, state.tenant_id).model_copy(
            update={
                "provider_customer_id": event.customer_id
                or state.provider_customer_id,
                "ended_subscription_id": state.ended_subscription_id,
                "released_schedule_id": state.released_schedule_id,
                "schedule_released_at": state.schedule_released_at,
            }
        )
        return _outcome(state, adopted, "Subscription linked to provider")

    if state.provider_subscription_id != event.provider_subscription_id:
        audit = _drift(
            state,
            "Ignoring event for a subscription the tenant no longer tracks",
            event_subscription_id=event.provider_subscription_id,
            tracked_subscription_id=state.provider_subscription_id,
        )
        return HandlerOutcome(state=state, side_effects=[audit])

    effects = []

    if state.last_event_at is not None and event.occurred_at < state.last_event_at:
        # Stale notification: only a forward period move is safe to take
        updated = state
        if event.period_end > state.current_period_end:
            updated = land_scheduled_change(
                state.model_copy(
                    update={
                        "current_period_start": event.period_start,
                        "current_period_end": event.period_end,
                    }
                )
            )
        logger.info(
            f"Skipping stale fields of event {event.event_id}",
            extra={"tenant_id": state.tenant_id, "event_id": event.event_id},
        )
        return _outcome(state, updated, "Subscription period advanced")

    status = state.status
    if state.status.can_transition_to(event.status):
        status = event.status
    else:
        effects.append(
            _drift(
                state,
                f"Rejected status transition {state.status.value} -> {event.status.value}",
                from_status=state.status.value,
                to_status=event.status.value,
            )
        )

    update: dict = {
        "status": status,
        "cancel_at_period_end": event.cancel_at_period_end,
        "last_event_at": event.occurred_at,
    }
    if event.customer_id and not state.provider_customer_id:
        update["provider_customer_id"] = event.customer_id
    if event.period_end >= state.current_period_end:
        update["current_period_start"] = event.period_start
        update["current_period_end"] = event.period_end
    if event.price_id:
        plan, interval = snapshot.find_by_price_id(event.price_id)
        update["plan_id"] = plan.id
        update["interval"] = interval

    # A terminal status keeps the pending change so deletion can act on it
    if not event.status.is_terminal():
        change = state.scheduled_change
        if event.cancel_at_period_end:
            change = _deferred_cancel_change(
                event,
                snapshot,
                update.get("interval", state.interval),
                update.get("current_period_end", state.current_period_end),
            )
        elif change is not None and change.origin == ScheduledChangeOrigin.CANCEL_AT_PERIOD_END:
            change = None
        update["scheduled_change"] = change

    updated = land_scheduled_change(state.model_copy(update=update))
    return _outcome(state, updated, "Subscription synced from provider", effects)


def handle_schedule_declared(
    event: ScheduleDeclaredEvent, state: SubscriptionState, snapshot: CatalogSnapshot
) -> HandlerOutcome:
    """
    Record the change a two-phase schedule declares.

    The last phase carries the target. A schedule whose last phase already
    started lands immediately. The cancel flag is never touched here.
    Declarations of finished schedules, and any emitted before the latest
    release, are dropped.
    """
    if not event.phases:
        return HandlerOutcome(state=state)

    if event.schedule_status in _FINISHED_SCHEDULE_STATUSES:
        logger.info(
            f"Ignoring declaration of {event.schedule_status} schedule {event.schedule_id}",
            extra={"tenant_id": state.tenant_id, "event_id": event.event_id},
        )
        return HandlerOutcome(state=state)

    if event.schedule_id == state.released_schedule_id or (
        state.schedule_released_at is not None
        and event.occurred_at < state.schedule_released_at
    ):
        logger.info(
            f"Ignoring declaration of schedule {event.schedule_id} older than the last release",
            extra={"tenant_id": state.tenant_id, "event_id": event.event_id},
        )
        return HandlerOutcome(state=state)

    final_phase = event.phases[-1]
    plan, interval = snapshot.find_by_price_id(final_phase.price_id)
    if plan.id == state.plan_id and interval == state.interval:
        # Schedule mirrors the current price (e.g. the single-phase create)
        return HandlerOutcome(state=state)

    change = ScheduledChange(
        target_plan_id=plan.id,
        target_interval=interval,
        effective_at=final_phase.start,
        origin=ScheduledChangeOrigin.SCHEDULE,
        schedule_id=event.schedule_id,
    )
    updated = land_scheduled_change(
        state.model_copy(update={"scheduled_change": change})
    )
    return _outcome(state, updated, "Scheduled change recorded")


def handle_schedule_released(
    event: ScheduleReleasedEvent, state: SubscriptionState, snapshot: CatalogSnapshot
) -> HandlerOutcome:
    """
    Drop the change backed by the released schedule.

    The release is remembered so a late declaration of the same or an older
    schedule cannot bring the change back. Only a change carrying this
    schedule id is cleared. If the release happened after the change took
    effect at the provider, the change lands instead of being dropped.
    """
    audit = RecordAudit(
        message="Subscription schedule released",
        attributes={"tenant_id": state.tenant_id, "schedule_id": event.schedule_id},
    )
    recorded = state
    if (
        state.schedule_released_at is None
        or event.occurred_at >= state.schedule_released_at
    ):
        recorded = state.model_copy(
            update={
                "released_schedule_id": event.schedule_id,
                "schedule_released_at": event.occurred_at,
            }
        )

    change = state.scheduled_change
    if change is None or change.schedule_id != event.schedule_id:
        return _outcome(state, recorded, "Schedule release recorded", [audit])

    if event.occurred_at >= change.effective_at:
        updated = recorded.model_copy(
            update={
                "plan_id": change.target_plan_id,
                "interval": change.target_interval,
                "scheduled_change": None,
            }
        )
    else:
        updated = recorded.model_copy(update={"scheduled_change": None})
    return _outcome(state, updated, "Scheduled change cleared", [audit])


def _replacement_for(
    state: SubscriptionState, snapshot: CatalogSnapshot, previous_subscription_id: str
) -> Optional[ProvisionReplacementSubscription]:
    """The provider subscription a paid tenant without one is still owed."""
    if state.plan_id == snapshot.baseline_plan_id or not state.provider_customer_id:
        return None
    price = snapshot.lookup(state.plan_id).price_for(state.interval)
    if price is None or not price.provider_price_id:
        return None
    return ProvisionReplacementSubscription(
        tenant_id=state.tenant_id,
        customer_id=state.provider_customer_id,
        price_id=price.provider_price_id,
        previous_subscription_id=previous_subscription_id,
        target_plan_id=state.plan_id,
        target_interval=state.interval,
    )


def handle_subscription_deleted(
    event: SubscriptionDeletedEvent, state: SubscriptionState, snapshot: CatalogSnapshot
) -> HandlerOutcome:
    """
    End the provider subscription.

    A landed deferred downgrade to a paid plan moves the tenant to the target
    and asks for a replacement subscription. Anything else demotes the tenant
    to the baseline plan. Redelivery of the deletion before a replacement is
    linked asks for the replacement again; provisioning is idempotency-keyed
    on the ended subscription.
    """
    if (
        state.provider_subscription_id is None
        and state.ended_subscription_id is not None
        and state.ended_subscription_id == event.provider_subscription_id
    ):
        provision = _replacement_for(state, snapshot, event.provider_subscription_id)
        return HandlerOutcome(
            state=state, side_effects=[provision] if provision else []
        )

    if state.provider_subscription_id != event.provider_subscription_id:
        return HandlerOutcome(state=state)

    ended = {
        "provider_subscription_id": None,
        "ended_subscription_id": event.provider_subscription_id,
        "cancel_at_period_end": False,
        "scheduled_change": None,
        "last_event_at": max(
            event.occurred_at, state.last_event_at or event.occurred_at
        ),
    }

    change = state.scheduled_change
    if (
        change is not None
        and change.origin == ScheduledChangeOrigin.CANCEL_AT_PERIOD_END
        and change.target_plan_id != snapshot.baseline_plan_id
        and change.has_landed(event.ended_at)
    ):
        landed = state.model_copy(
            update={
                **ended,
                "plan_id": change.target_plan_id,
                "interval": change.target_interval,
            }
        )
        provision = _replacement_for(landed, snapshot, event.provider_subscription_id)
        if provision is not None:
            return _outcome(state, landed, "Deferred downgrade landed", [provision])

    status = state.status
    if status.can_transition_to(SubscriptionStatus.CANCELED):
        status = SubscriptionStatus.CANCELED

    updated = state.model_copy(
        update={**ended, "plan_id": snapshot.baseline_plan_id, "status": status}
    )
    return _outcome(state, updated, "Subscription ended; tenant on baseline plan")


_HANDLERS: dict[str, Callable[..., HandlerOutcome]] = {
    "renewal": handle_renewal,
    "subscription_sync": handle_subscription_sync,
    "subscription_deleted": handle_subscription_deleted,
    "schedule_declared": handle_schedule_declared,
    "schedule_released": handle_schedule_released,
}


def apply_event(
    event, state: Optional[SubscriptionState], snapshot: CatalogSnapshot
) -> HandlerOutcome:
    """Dispatch an event to its handler. Only subscription-sync may create state."""
    if state is None and event.kind != "subscription_sync":
        return HandlerOutcome()
    return _HANDLERS[event.kind](event, state, snapshot)
