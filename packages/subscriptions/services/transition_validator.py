"""
Plan transition classification.

Pure functions over a catalog snapshot. Nothing here is cached: every request
classifies against the snapshot current at that moment, since the catalog can
be reloaded between requests.
"""

from common.core.exceptions import ValidationError
from packages.subscriptions.models.domain.enums import (
    BillingInterval,
    TransitionDirection,
    TransitionKind,
)
from packages.subscriptions.models.domain.plans import CatalogSnapshot
from packages.subscriptions.models.domain.transitions import TransitionDecision


def classify(
    snapshot: CatalogSnapshot, from_plan_id: str, to_plan_id: str
) -> TransitionKind:
    """
    Classify a plan change by the source plan's declared targets.

    Same-plan requests are always invalid.
    """
    if from_plan_id == to_plan_id:
        return TransitionKind.INVALID
    from_plan = snapshot.lookup(from_plan_id)
    if to_plan_id in from_plan.upgrade_targets:
        return TransitionKind.UPGRADE
    if to_plan_id in from_plan.downgrade_targets:
        return TransitionKind.DOWNGRADE
    return TransitionKind.INVALID


def allowed_targets(snapshot: CatalogSnapshot, plan_id: str) -> dict[str, list[str]]:
    """Allowed targets by direction, for presenting valid options to the caller."""
    return {
        direction.value: sorted(snapshot.allowed_targets(plan_id, direction))
        for direction in TransitionDirection
    }


def validate_transition(
    snapshot: CatalogSnapshot,
    current_plan_id: str,
    current_interval: BillingInterval,
    target_plan_id: str,
    target_interval: BillingInterval,
) -> TransitionDecision:
    """
    Validate a requested plan/interval change.

    Raises:
        UnknownPlanError: the current plan is missing from the catalog
        ValidationError: the request is a no-op, targets a plan that is not an
            allowed target, or asks for an interval the target does not offer
    """
    # Current plan must exist; a missing one is a configuration problem
    snapshot.lookup(current_plan_id)
    options = allowed_targets(snapshot, current_plan_id)
    context = {
        "current_plan_id": current_plan_id,
        "current_interval": current_interval.value,
        "target_plan_id": target_plan_id,
        "target_interval": target_interval.value,
        "catalog_version": snapshot.version,
    }

    if target_plan_id == current_plan_id:
        if target_interval == current_interval:
            raise ValidationError(
                "Subscription is already on the requested plan and interval",
                allowed_targets=options,
                context=context,
            )
        kind = TransitionKind.INTERVAL_ONLY
    else:
        if target_plan_id not in snapshot.plans:
            raise ValidationError(
                f"Unknown target plan '{target_plan_id}'",
                allowed_targets=options,
                context=context,
            )
        kind = classify(snapshot, current_plan_id, target_plan_id)
        if kind == TransitionKind.INVALID:
            raise ValidationError(
                f"Cannot move from '{current_plan_id}' to '{target_plan_id}'",
                allowed_targets=options,
                context=context,
            )

    if not snapshot.lookup(target_plan_id).offers(target_interval):
        raise ValidationError(
            f"Plan '{target_plan_id}' is not offered per {target_interval.value}",
            allowed_targets=options,
            context=context,
        )

    return TransitionDecision(
        kind=kind,
        from_plan_id=current_plan_id,
        from_interval=current_interval,
        to_plan_id=target_plan_id,
        to_interval=target_interval,
        catalog_version=snapshot.version,
    )
