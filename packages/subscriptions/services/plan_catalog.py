"""
Process-wide plan catalog.

The catalog is an immutable, versioned snapshot. reload() builds a complete
new snapshot, validates it, and swaps the reference; readers holding the old
snapshot keep a consistent view. Reads take no lock.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

from common.core.config import settings
from common.core.exceptions import ConfigurationError
from common.core.otel_axiom_exporter import get_logger
from packages.subscriptions.catalog.default_plans import build_default_plans
from packages.subscriptions.models.domain.enums import (
    BillingInterval,
    TransitionDirection,
)
from packages.subscriptions.models.domain.plans import CatalogSnapshot, Plan

logger = get_logger(__name__)

PlanDefinition = Union[Plan, dict]


def validate_catalog(plans: dict[str, Plan], baseline_plan_id: str) -> None:
    """
    Check catalog invariants.

    Raises:
        ConfigurationError: if any transition edge is dangling, contradictory,
            inconsistent with price ordering, or the upgrade graph has a cycle
    """
    if baseline_plan_id not in plans:
        raise ConfigurationError(
            f"Baseline plan '{baseline_plan_id}' is not in the catalog",
            context={"baseline_plan_id": baseline_plan_id},
        )

    for plan in plans.values():
        targets = plan.upgrade_targets | plan.downgrade_targets
        missing = sorted(targets - plans.keys())
        if missing:
            raise ConfigurationError(
                f"Plan '{plan.id}' references unknown plans: {missing}",
                context={"plan_id": plan.id, "missing": missing},
            )
        if plan.id in targets:
            raise ConfigurationError(
                f"Plan '{plan.id}' lists itself as a transition target",
                context={"plan_id": plan.id},
            )
        both = sorted(plan.upgrade_targets & plan.downgrade_targets)
        if both:
            raise ConfigurationError(
                f"Plan '{plan.id}' lists {both} as both upgrade and downgrade",
                context={"plan_id": plan.id, "targets": both},
            )

        for interval in BillingInterval:
            price = plan.price_for(interval)
            if price is None:
                continue
            for target_id in plan.upgrade_targets:
                target_price = plans[target_id].price_for(interval)
                if target_price and target_price.amount_cents < price.amount_cents:
                    raise ConfigurationError(
                        f"Upgrade '{plan.id}' -> '{target_id}' is cheaper per {interval.value}",
                        context={"plan_id": plan.id, "target_id": target_id},
                    )
            for target_id in plan.downgrade_targets:
                target_price = plans[target_id].price_for(interval)
                if target_price and target_price.amount_cents > price.amount_cents:
                    raise ConfigurationError(
                        f"Downgrade '{plan.id}' -> '{target_id}' is pricier per {interval.value}",
                        context={"plan_id": plan.id, "target_id": target_id},
                    )

    _check_upgrades_acyclic(plans)


def _check_upgrades_acyclic(plans: dict[str, Plan]) -> None:
    visiting: set[str] = set()
    done: set[str] = set()

    def visit(plan_id: str, path: list[str]) -> None:
        if plan_id in done:
            return
        if plan_id in visiting:
            cycle = path[path.index(plan_id) :] + [plan_id]
            raise ConfigurationError(
                f"Upgrade cycle detected: {' -> '.join(cycle)}",
                context={"cycle": cycle},
            )
        visiting.add(plan_id)
        for target_id in sorted(plans[plan_id].upgrade_targets):
            visit(target_id, path + [plan_id])
        visiting.discard(plan_id)
        done.add(plan_id)

    for plan_id in sorted(plans):
        visit(plan_id, [])


def _load_definitions_file(path: str) -> list[dict]:
    try:
        raw = json.loads(Path(path).read_text())
    except (OSError, ValueError) as e:
        raise ConfigurationError(
            f"Cannot read plan catalog file {path}: {e}", context={"path": path}
        ) from e
    if isinstance(raw, dict):
        raw = raw.get("plans", [])
    if not isinstance(raw, list):
        raise ConfigurationError(
            "Plan catalog file must hold a list of plans", context={"path": path}
        )
    return raw


class PlanCatalog:
    """Holder for the current catalog snapshot."""

    def __init__(
        self,
        baseline_plan_id: Optional[str] = None,
        catalog_path: Optional[str] = None,
    ):
        self.baseline_plan_id = baseline_plan_id or settings.baseline_plan_id
        self.catalog_path = catalog_path
        self._snapshot: Optional[CatalogSnapshot] = None
        self._version = 0

    @property
    def snapshot(self) -> CatalogSnapshot:
        if self._snapshot is None:
            self.reload()
        return self._snapshot

    def reload(
        self, definitions: Optional[Iterable[PlanDefinition]] = None
    ) -> CatalogSnapshot:
        """
        Build, validate, and publish a new snapshot.

        Source precedence: explicit definitions, then the catalog file, then
        the built-in plans. A failed validation leaves the current snapshot in
        place.
        """
        if definitions is None:
            if self.catalog_path:
                definitions = _load_definitions_file(self.catalog_path)
            else:
                definitions = build_default_plans()

        plans: dict[str, Plan] = {}
        for definition in definitions:
            plan = (
                definition
                if isinstance(definition, Plan)
                else Plan.model_validate(definition)
            )
            if plan.id in plans:
                raise ConfigurationError(
                    f"Duplicate plan id '{plan.id}'", context={"plan_id": plan.id}
                )
            plans[plan.id] = plan

        validate_catalog(plans, self.baseline_plan_id)

        snapshot = CatalogSnapshot(
            version=self._version + 1,
            loaded_at=datetime.now(timezone.utc),
            baseline_plan_id=self.baseline_plan_id,
            plans=plans,
        )
        self._version = snapshot.version
        self._snapshot = snapshot

        logger.info(
            f"Loaded plan catalog version {snapshot.version} with {len(plans)} plans",
            extra={"catalog_version": snapshot.version, "plan_ids": sorted(plans)},
        )
        return snapshot

    def lookup(self, plan_id: str) -> Plan:
        return self.snapshot.lookup(plan_id)

    def allowed_targets(
        self, plan_id: str, direction: TransitionDirection
    ) -> frozenset[str]:
        return self.snapshot.allowed_targets(plan_id, direction)

    def find_by_price_id(self, price_id: str) -> tuple[Plan, BillingInterval]:
        return self.snapshot.find_by_price_id(price_id)


# Global instance
_plan_catalog: Optional[PlanCatalog] = None


def get_plan_catalog() -> PlanCatalog:
    """Get the process-wide plan catalog."""
    global _plan_catalog

    if _plan_catalog is None:
        _plan_catalog = PlanCatalog(catalog_path=settings.plan_catalog_path)

    return _plan_catalog
