"""
Stripe implementation of payment provider.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Optional
import stripe

from common.core.config import settings
from common.core.exceptions import (
    AppException,
    ProviderError,
    TransientProviderError,
)
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.subscriptions.models.domain.enums import SubscriptionStatus
from packages.subscriptions.models.domain.provider_events import (
    ProviderSubscriptionSnapshot,
    SchedulePhase,
)
from packages.subscriptions.providers.payment.interface import (
    PaymentProviderInterface,
)
from packages.subscriptions.providers.payment.retry import with_provider_retry

logger = get_logger(__name__)


def _translate_error(e: stripe.StripeError, action: str) -> AppException:
    """Map Stripe errors onto retryable and non-retryable provider errors."""
    context = {"action": action, "stripe_code": getattr(e, "code", None)}
    if isinstance(
        e, (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError)
    ):
        return TransientProviderError(
            f"Payment provider unavailable during {action}", context=context
        )
    return ProviderError(
        f"Payment provider rejected {action}: {e.user_message or str(e)}",
        context=context,
    )


def _ts(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _snapshot_from_stripe(subscription: Any) -> ProviderSubscriptionSnapshot:
    """Build a typed snapshot from a Stripe subscription object."""
    items = subscription["items"]["data"]
    first_item = items[0] if items else None

    # Newer API versions moved the period onto subscription items
    period_start = subscription.get("current_period_start")
    period_end = subscription.get("current_period_end")
    if (period_start is None or period_end is None) and first_item is not None:
        period_start = first_item.get("current_period_start")
        period_end = first_item.get("current_period_end")

    schedule = subscription.get("schedule")
    if schedule is not None and not isinstance(schedule, str):
        schedule = schedule["id"]

    customer = subscription.get("customer")
    if customer is not None and not isinstance(customer, str):
        customer = customer["id"]

    metadata = subscription.get("metadata") or {}

    return ProviderSubscriptionSnapshot(
        id=subscription["id"],
        customer_id=customer,
        status=SubscriptionStatus.from_provider_status(subscription["status"]),
        price_id=first_item["price"]["id"] if first_item is not None else None,
        cancel_at_period_end=bool(subscription.get("cancel_at_period_end")),
        current_period_start=_ts(period_start),
        current_period_end=_ts(period_end),
        schedule_id=schedule,
        metadata={key: str(value) for key, value in metadata.items()},
    )


class StripePaymentProvider(PaymentProviderInterface):
    """
    Stripe-based payment implementation.

    Every call goes through _call, which translates Stripe errors and retries
    transient ones with bounded backoff.
    """

    def __init__(self):
        """Initialize Stripe with API credentials."""
        stripe.api_key = settings.stripe_secret_key

    async def _call(self, action: str, fn: Callable[[], Any]) -> Any:
        async def attempt():
            try:
                return fn()
            except stripe.StripeError as e:
                raise _translate_error(e, action) from e

        return await with_provider_retry(attempt, action)

    @trace_span
    async def retrieve_subscription(
        self, subscription_id: str
    ) -> Optional[ProviderSubscriptionSnapshot]:
        """Retrieve a Stripe subscription, or None if Stripe reports it missing."""
        try:
            subscription = await self._call(
                "retrieve_subscription",
                lambda: stripe.Subscription.retrieve(subscription_id),
            )
        except ProviderError as e:
            if e.context.get("stripe_code") == "resource_missing":
                logger.warning(
                    f"Stripe subscription {subscription_id} not found",
                    extra={"subscription_id": subscription_id},
                )
                return None
            raise

        return _snapshot_from_stripe(subscription)

    @trace_span
    async def update_subscription_price(
        self, subscription_id: str, price_id: str
    ) -> ProviderSubscriptionSnapshot:
        """
        Update the subscription's single item to a new price.

        Uses always_invoice to charge the proration immediately.
        """
        try:
            subscription = await self._call(
                "retrieve_subscription",
                lambda: stripe.Subscription.retrieve(subscription_id),
            )
            item_id = subscription["items"]["data"][0]["id"]

            updated = await self._call(
                "update_subscription_price",
                lambda: stripe.Subscription.modify(
                    subscription_id,
                    items=[{"id": item_id, "price": price_id}],
                    proration_behavior="always_invoice",
                    payment_behavior="error_if_incomplete",
                ),
            )

            logger.info(
                f"Updated Stripe subscription to price {price_id}",
                extra={"subscription_id": subscription_id, "price_id": price_id},
            )
            return _snapshot_from_stripe(updated)

        except Exception as e:
            logger.error(
                f"Failed to update subscription price: {str(e)}",
                extra={"subscription_id": subscription_id, "error": str(e)},
            )
            raise

    @trace_span
    async def set_cancel_at_period_end(
        self,
        subscription_id: str,
        cancel_at_period_end: bool,
        metadata: Optional[dict[str, str]] = None,
    ) -> ProviderSubscriptionSnapshot:
        """Set or clear cancel_at_period_end, optionally updating metadata."""
        params: dict[str, Any] = {"cancel_at_period_end": cancel_at_period_end}
        if metadata is not None:
            params["metadata"] = metadata

        try:
            updated = await self._call(
                "set_cancel_at_period_end",
                lambda: stripe.Subscription.modify(subscription_id, **params),
            )

            logger.info(
                f"Set cancel_at_period_end={cancel_at_period_end} on Stripe subscription",
                extra={
                    "subscription_id": subscription_id,
                    "cancel_at_period_end": cancel_at_period_end,
                },
            )
            return _snapshot_from_stripe(updated)

        except Exception as e:
            logger.error(
                f"Failed to set cancel_at_period_end: {str(e)}",
                extra={"subscription_id": subscription_id, "error": str(e)},
            )
            raise

    @trace_span
    async def create_schedule_from_subscription(self, subscription_id: str) -> str:
        """
        Create a schedule from an existing subscription.

        Stripe rejects phases on a from_subscription create, so phases are set
        by a separate update_schedule_phases call.
        """
        try:
            schedule = await self._call(
                "create_schedule",
                lambda: stripe.SubscriptionSchedule.create(
                    from_subscription=subscription_id
                ),
            )

            logger.info(
                "Created Stripe subscription schedule",
                extra={"subscription_id": subscription_id, "schedule_id": schedule.id},
            )
            return schedule.id

        except Exception as e:
            logger.error(
                f"Failed to create subscription schedule: {str(e)}",
                extra={"subscription_id": subscription_id, "error": str(e)},
            )
            raise

    @trace_span
    async def update_schedule_phases(
        self, schedule_id: str, phases: list[SchedulePhase]
    ) -> None:
        stripe_phases = []
        for phase in phases:
            stripe_phase: dict[str, Any] = {
                "items": [{"price": phase.price_id, "quantity": 1}],
                "start_date": int(phase.start.timestamp()),
            }
            if phase.end is not None:
                stripe_phase["end_date"] = int(phase.end.timestamp())
            stripe_phases.append(stripe_phase)

        try:
            await self._call(
                "update_schedule_phases",
                lambda: stripe.SubscriptionSchedule.modify(
                    schedule_id,
                    end_behavior="release",
                    phases=stripe_phases,
                    proration_behavior="none",
                ),
            )

            logger.info(
                f"Updated Stripe schedule with {len(phases)} phases",
                extra={"schedule_id": schedule_id},
            )

        except Exception as e:
            logger.error(
                f"Failed to update schedule phases: {str(e)}",
                extra={"schedule_id": schedule_id, "error": str(e)},
            )
            raise

    @trace_span
    async def release_schedule(self, schedule_id: str) -> None:
        try:
            await self._call(
                "release_schedule",
                lambda: stripe.SubscriptionSchedule.release(schedule_id),
            )

            logger.info(
                "Released Stripe subscription schedule",
                extra={"schedule_id": schedule_id},
            )

        except Exception as e:
            logger.error(
                f"Failed to release schedule: {str(e)}",
                extra={"schedule_id": schedule_id, "error": str(e)},
            )
            raise

    @trace_span
    async def create_subscription(
        self,
        customer_id: str,
        price_id: str,
        tenant_id: int,
        idempotency_key: Optional[str] = None,
    ) -> ProviderSubscriptionSnapshot:
        """Create a Stripe subscription for an existing customer."""
        params: dict[str, Any] = {
            "customer": customer_id,
            "items": [{"price": price_id, "quantity": 1}],
            "metadata": {"tenant_id": str(tenant_id)},
        }
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        try:
            subscription = await self._call(
                "create_subscription",
                lambda: stripe.Subscription.create(**params),
            )

            logger.info(
                "Created Stripe subscription",
                extra={
                    "tenant_id": tenant_id,
                    "customer_id": customer_id,
                    "subscription_id": subscription["id"],
                },
            )
            return _snapshot_from_stripe(subscription)

        except Exception as e:
            logger.error(
                f"Failed to create subscription: {str(e)}",
                extra={"tenant_id": tenant_id, "error": str(e)},
            )
            raise

    @trace_span
    async def health_check(self) -> bool:
        """Check Stripe health."""
        try:
            # Try to retrieve account to verify API key works
            stripe.Account.retrieve()
            return True
        except Exception as e:
            logger.error(f"Payment health check failed: {e}")
            return False
