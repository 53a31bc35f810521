"""
Interface for payment providers.

Abstracts the billing backend that holds authoritative subscription state
away from a specific platform (Stripe, Paddle, etc.)
"""

from abc import ABC, abstractmethod
from typing import Optional

from packages.subscriptions.models.domain.provider_events import (
    ProviderSubscriptionSnapshot,
    SchedulePhase,
)


class PaymentProviderInterface(ABC):
    """Abstract interface for payment providers."""

    @abstractmethod
    async def retrieve_subscription(
        self, subscription_id: str
    ) -> Optional[ProviderSubscriptionSnapshot]:
        """
        Fetch the provider's current view of a subscription.

        Returns:
            The snapshot, or None if the provider no longer knows the id
        """
        pass

    @abstractmethod
    async def update_subscription_price(
        self, subscription_id: str, price_id: str
    ) -> ProviderSubscriptionSnapshot:
        """
        Swap the subscription's price immediately, invoicing the proration.

        Used for same-interval paid upgrades.
        """
        pass

    @abstractmethod
    async def set_cancel_at_period_end(
        self,
        subscription_id: str,
        cancel_at_period_end: bool,
        metadata: Optional[dict[str, str]] = None,
    ) -> ProviderSubscriptionSnapshot:
        """
        Set or clear the deferred-cancellation flag.

        Args:
            subscription_id: Payment provider subscription ID
            cancel_at_period_end: Flag value
            metadata: Metadata keys to set; an empty string value removes a key
        """
        pass

    @abstractmethod
    async def create_schedule_from_subscription(self, subscription_id: str) -> str:
        """
        Create a schedule bound to an existing subscription, with no phase data.

        Returns:
            schedule_id
        """
        pass

    @abstractmethod
    async def update_schedule_phases(
        self, schedule_id: str, phases: list[SchedulePhase]
    ) -> None:
        """
        Replace the schedule's phases. The last phase is open-ended and the
        schedule releases the subscription when it completes.
        """
        pass

    @abstractmethod
    async def release_schedule(self, schedule_id: str) -> None:
        """Detach a schedule, leaving the subscription on its current price."""
        pass

    @abstractmethod
    async def create_subscription(
        self,
        customer_id: str,
        price_id: str,
        tenant_id: int,
        idempotency_key: Optional[str] = None,
    ) -> ProviderSubscriptionSnapshot:
        """Create a new subscription for an existing customer."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the payment backend is available and healthy.

        Returns:
            True if healthy, False otherwise
        """
        pass
