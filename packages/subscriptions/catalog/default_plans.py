"""
Built-in plan catalog.

Prices and limits for the standard tiers. Provider price ids come from
settings so each environment can point at its own Stripe prices.
"""

from common.core.config import settings
from packages.subscriptions.models.domain.enums import BillingInterval, UsageMetric
from packages.subscriptions.models.domain.plans import OveragePolicy, Plan, PlanPrice

# Ordered cheapest first; upgrade/downgrade edges follow this order
PLAN_ORDER = ["free", "starter", "professional", "business"]


def _price(amount_cents: int, price_id: str) -> PlanPrice:
    return PlanPrice(amount_cents=amount_cents, provider_price_id=price_id or None)


def build_default_plans() -> list[Plan]:
    """Build the built-in plans with price ids from the current settings."""
    definitions = {
        "free": dict(
            name="Free",
            prices={
                BillingInterval.MONTH: PlanPrice(amount_cents=0),
                BillingInterval.YEAR: PlanPrice(amount_cents=0),
            },
            limits={
                UsageMetric.COMPUTE_MINUTES: 100,
                UsageMetric.API_REQUESTS: 1_000,
                UsageMetric.CONCURRENT_JOBS: 1,
            },
            overage=OveragePolicy(enabled=False),
        ),
        "starter": dict(
            name="Starter",
            prices={
                BillingInterval.MONTH: _price(
                    1900, settings.stripe_price_id_starter_month
                ),
                BillingInterval.YEAR: _price(
                    19000, settings.stripe_price_id_starter_year
                ),
            },
            limits={
                UsageMetric.COMPUTE_MINUTES: 2_000,
                UsageMetric.API_REQUESTS: 50_000,
                UsageMetric.CONCURRENT_JOBS: 2,
            },
            overage=OveragePolicy(enabled=True, unit_price_cents=2),
        ),
        "professional": dict(
            name="Professional",
            prices={
                BillingInterval.MONTH: _price(
                    4900, settings.stripe_price_id_professional_month
                ),
                BillingInterval.YEAR: _price(
                    49000, settings.stripe_price_id_professional_year
                ),
            },
            limits={
                UsageMetric.COMPUTE_MINUTES: 10_000,
                UsageMetric.API_REQUESTS: 250_000,
                UsageMetric.CONCURRENT_JOBS: 5,
            },
            overage=OveragePolicy(enabled=True, unit_price_cents=1),
        ),
        "business": dict(
            name="Business",
            prices={
                BillingInterval.MONTH: _price(
                    17900, settings.stripe_price_id_business_month
                ),
                BillingInterval.YEAR: _price(
                    179000, settings.stripe_price_id_business_year
                ),
            },
            # No api_requests cap
            limits={
                UsageMetric.COMPUTE_MINUTES: 50_000,
                UsageMetric.CONCURRENT_JOBS: 20,
            },
            overage=OveragePolicy(enabled=True, unit_price_cents=1),
        ),
    }

    plans = []
    for index, plan_id in enumerate(PLAN_ORDER):
        plans.append(
            Plan(
                id=plan_id,
                upgrade_targets=frozenset(PLAN_ORDER[index + 1 :]),
                downgrade_targets=frozenset(PLAN_ORDER[:index]),
                **definitions[plan_id],
            )
        )
    return plans
