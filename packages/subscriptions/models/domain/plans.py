"""Domain models for plans and the plan catalog."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from common.core.exceptions import UnknownPlanError
from packages.subscriptions.models.domain.enums import (
    BillingInterval,
    TransitionDirection,
    UsageMetric,
)


class PlanPrice(BaseModel):
    """Price of a plan for one billing interval."""

    amount_cents: int = Field(ge=0)
    provider_price_id: Optional[str] = None

    class Config:
        frozen = True


class OveragePolicy(BaseModel):
    """Whether usage beyond the included limit is billed or blocked."""

    enabled: bool = False
    unit_price_cents: int = Field(default=0, ge=0)

    class Config:
        frozen = True


class Plan(BaseModel):
    """
    A plan definition.

    limits maps metric -> included quantity. A metric missing from limits is
    unlimited.
    """

    id: str
    name: str
    prices: dict[BillingInterval, PlanPrice]
    limits: dict[UsageMetric, int] = Field(default_factory=dict)
    overage: OveragePolicy = Field(default_factory=OveragePolicy)
    upgrade_targets: frozenset[str] = frozenset()
    downgrade_targets: frozenset[str] = frozenset()

    class Config:
        frozen = True

    def offers(self, interval: BillingInterval) -> bool:
        return interval in self.prices

    def price_for(self, interval: BillingInterval) -> Optional[PlanPrice]:
        return self.prices.get(interval)

    def limit_for(self, metric: UsageMetric) -> Optional[int]:
        return self.limits.get(metric)

    def is_free(self) -> bool:
        return all(price.amount_cents == 0 for price in self.prices.values())

    def targets(self, direction: TransitionDirection) -> frozenset[str]:
        if direction == TransitionDirection.UPGRADE:
            return self.upgrade_targets
        return self.downgrade_targets


class CatalogSnapshot(BaseModel):
    """Immutable, versioned view of every plan. Replaced wholesale on reload."""

    version: int
    loaded_at: datetime
    baseline_plan_id: str
    plans: dict[str, Plan]

    class Config:
        frozen = True

    def lookup(self, plan_id: str) -> Plan:
        plan = self.plans.get(plan_id)
        if plan is None:
            raise UnknownPlanError(plan_id, catalog_version=self.version)
        return plan

    def allowed_targets(
        self, plan_id: str, direction: TransitionDirection
    ) -> frozenset[str]:
        return self.lookup(plan_id).targets(direction)

    def baseline_plan(self) -> Plan:
        return self.lookup(self.baseline_plan_id)

    def find_by_price_id(self, price_id: str) -> tuple[Plan, BillingInterval]:
        """Resolve a provider price id to (plan, interval)."""
        for plan in self.plans.values():
            for interval, price in plan.prices.items():
                if price.provider_price_id and price.provider_price_id == price_id:
                    return plan, interval
        raise UnknownPlanError(price_id, catalog_version=self.version)


class PlanInfo(BaseModel):
    """Plan as presented to API clients."""

    id: str
    name: str
    prices: dict[BillingInterval, PlanPrice]
    limits: dict[UsageMetric, int]
    overage: OveragePolicy
    upgrade_targets: list[str]
    downgrade_targets: list[str]

    @classmethod
    def from_plan(cls, plan: Plan) -> "PlanInfo":
        return cls(
            id=plan.id,
            name=plan.name,
            prices=plan.prices,
            limits=plan.limits,
            overage=plan.overage,
            upgrade_targets=sorted(plan.upgrade_targets),
            downgrade_targets=sorted(plan.downgrade_targets),
        )


class PlansResponse(BaseModel):
    """Response model for plans endpoint."""

    version: int
    loaded_at: datetime
    baseline_plan_id: str
    plans: list[PlanInfo]
