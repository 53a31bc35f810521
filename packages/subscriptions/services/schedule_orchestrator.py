"""
Realizes validated transitions at the payment provider.

Mechanism policy:
- target is the baseline plan: cancel at period end (nothing to bill afterwards)
- interval change: two-phase schedule, phase 2 starting at current period end
- paid downgrade, same interval: cancel at period end plus target metadata
- paid upgrade, same interval: immediate price swap with proration

Every mechanism is preceded by retraction of whatever pending change the
provider holds (cancel-first). If retraction fails nothing new is created.
The orchestrator never writes local state; that follows from notifications.
"""

from datetime import datetime, timezone
from typing import Optional

from common.core.exceptions import DriftError, ValidationError
from common.core.otel_axiom_exporter import get_logger, trace_span
from packages.subscriptions.models.domain.enums import (
    BillingInterval,
    ChangeMechanism,
    TransitionKind,
)
from packages.subscriptions.models.domain.plans import CatalogSnapshot
from packages.subscriptions.models.domain.provider_events import (
    ProviderSubscriptionSnapshot,
    SchedulePhase,
)
from packages.subscriptions.models.domain.transitions import (
    RetractionResult,
    TransitionDecision,
    TransitionResult,
)
from packages.subscriptions.providers.payment.factory import get_payment_provider

logger = get_logger(__name__)

SCHEDULED_PLAN_KEY = "scheduled_plan_id"
SCHEDULED_INTERVAL_KEY = "scheduled_interval"


def _has_deferred_metadata(snapshot: ProviderSubscriptionSnapshot) -> bool:
    return bool(
        snapshot.metadata.get(SCHEDULED_PLAN_KEY)
        or snapshot.metadata.get(SCHEDULED_INTERVAL_KEY)
    )


def choose_mechanism(
    decision: TransitionDecision, snapshot: CatalogSnapshot
) -> ChangeMechanism:
    if decision.to_plan_id == snapshot.baseline_plan_id:
        return ChangeMechanism.DEFERRED_CANCEL
    if decision.interval_changed:
        return ChangeMechanism.SCHEDULE
    if decision.kind == TransitionKind.DOWNGRADE:
        return ChangeMechanism.DEFERRED_CANCEL
    return ChangeMechanism.IMMEDIATE


class ScheduleOrchestrator:
    """Applies transition decisions through the payment provider."""

    def __init__(self):
        self.payment_provider = get_payment_provider()

    def _price_id(
        self, snapshot: CatalogSnapshot, plan_id: str, interval: BillingInterval
    ) -> str:
        price = snapshot.lookup(plan_id).price_for(interval)
        if price is None or not price.provider_price_id:
            raise ValidationError(
                f"Plan '{plan_id}' has no provider price per {interval.value}",
                context={"plan_id": plan_id, "interval": interval.value},
            )
        return price.provider_price_id

    @trace_span
    async def retract_pending_change(
        self, provider_subscription_id: str
    ) -> RetractionResult:
        """
        Remove any pending change held by the provider.

        Releases an attached schedule and clears the deferred-cancellation flag
        and its metadata. Any failure propagates so no new change is created.
        """
        snapshot = await self.payment_provider.retrieve_subscription(
            provider_subscription_id
        )
        if snapshot is None:
            raise DriftError(
                "Payment provider no longer knows this subscription",
                context={"provider_subscription_id": provider_subscription_id},
            )

        released_schedule_id: Optional[str] = None
        cleared_flag = False

        if snapshot.schedule_id:
            await self.payment_provider.release_schedule(snapshot.schedule_id)
            released_schedule_id = snapshot.schedule_id
            logger.info(
                f"Retracted schedule {snapshot.schedule_id}",
                extra={
                    "subscription_id": provider_subscription_id,
                    "schedule_id": snapshot.schedule_id,
                },
            )

        if snapshot.cancel_at_period_end or _has_deferred_metadata(snapshot):
            snapshot = await self.payment_provider.set_cancel_at_period_end(
                provider_subscription_id,
                False,
                metadata={SCHEDULED_PLAN_KEY: "", SCHEDULED_INTERVAL_KEY: ""},
            )
            cleared_flag = True
            logger.info(
                "Retracted deferred cancellation",
                extra={"subscription_id": provider_subscription_id},
            )

        if released_schedule_id is not None:
            snapshot = snapshot.model_copy(update={"schedule_id": None})

        return RetractionResult(
            released_schedule_id=released_schedule_id,
            cleared_cancel_at_period_end=cleared_flag,
            snapshot=snapshot,
        )

    @trace_span
    async def apply(
        self,
        provider_subscription_id: str,
        decision: TransitionDecision,
        snapshot: CatalogSnapshot,
    ) -> TransitionResult:
        """Retract any pending change, then realize the decision."""
        mechanism = choose_mechanism(decision, snapshot)
        # Resolve prices before touching the provider
        target_price_id = None
        if mechanism != ChangeMechanism.DEFERRED_CANCEL:
            target_price_id = self._price_id(
                snapshot, decision.to_plan_id, decision.to_interval
            )

        retraction = await self.retract_pending_change(provider_subscription_id)
        provider_snapshot = retraction.snapshot

        log_extra = {
            "subscription_id": provider_subscription_id,
            "from_plan_id": decision.from_plan_id,
            "to_plan_id": decision.to_plan_id,
            "mechanism": mechanism.value,
        }

        if mechanism == ChangeMechanism.IMMEDIATE:
            await self.payment_provider.update_subscription_price(
                provider_subscription_id, target_price_id
            )
            effective_at = datetime.now(timezone.utc)
            reference = None

        elif mechanism == ChangeMechanism.SCHEDULE:
            reference = await self._create_two_phase_schedule(
                provider_subscription_id,
                provider_snapshot,
                decision,
                snapshot,
                target_price_id,
            )
            effective_at = provider_snapshot.current_period_end

        else:
            if decision.to_plan_id == snapshot.baseline_plan_id:
                metadata = None
            else:
                metadata = {
                    SCHEDULED_PLAN_KEY: decision.to_plan_id,
                    SCHEDULED_INTERVAL_KEY: decision.to_interval.value,
                }
            await self.payment_provider.set_cancel_at_period_end(
                provider_subscription_id, True, metadata=metadata
            )
            effective_at = provider_snapshot.current_period_end
            reference = None

        logger.info(
            f"Applied {decision.kind.value} via {mechanism.value}",
            extra={**log_extra, "effective_at": effective_at.isoformat()},
        )

        return TransitionResult(
            kind=decision.kind,
            mechanism=mechanism,
            from_plan_id=decision.from_plan_id,
            from_interval=decision.from_interval,
            to_plan_id=decision.to_plan_id,
            to_interval=decision.to_interval,
            effective_at=effective_at,
            provider_reference=reference,
            catalog_version=decision.catalog_version,
        )

    async def _create_two_phase_schedule(
        self,
        provider_subscription_id: str,
        provider_snapshot: ProviderSubscriptionSnapshot,
        decision: TransitionDecision,
        snapshot: CatalogSnapshot,
        target_price_id: str,
    ) -> str:
        """
        Create the schedule, then declare its phases in a second call.

        Phase boundaries are the provider's absolute period boundaries at call
        time. A schedule whose phases cannot be set is released again.
        """
        current_price_id = provider_snapshot.price_id or self._price_id(
            snapshot, decision.from_plan_id, decision.from_interval
        )
        phases = [
            SchedulePhase(
                price_id=current_price_id,
                start=provider_snapshot.current_period_start,
                end=provider_snapshot.current_period_end,
            ),
            SchedulePhase(
                price_id=target_price_id,
                start=provider_snapshot.current_period_end,
            ),
        ]

        schedule_id = await self.payment_provider.create_schedule_from_subscription(
            provider_subscription_id
        )
        try:
            await self.payment_provider.update_schedule_phases(schedule_id, phases)
        except Exception as e:
            logger.error(
                f"Failed to declare phases on schedule {schedule_id}, releasing it: {e}",
                extra={
                    "subscription_id": provider_subscription_id,
                    "schedule_id": schedule_id,
                },
            )
            try:
                await self.payment_provider.release_schedule(schedule_id)
            except Exception as release_error:
                logger.error(
                    f"Failed to release orphan schedule {schedule_id}: {release_error}",
                    extra={"schedule_id": schedule_id},
                )
            raise
        return schedule_id
