from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from packages.subscriptions.models.database.subscription import SubscriptionEntity
from packages.subscriptions.models.domain.subscription import (
    ScheduledChange,
    Subscription,
)
from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)


class SubscriptionFactory:
    """Factory for persisting subscription rows in tests."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        tenant_id: int = 1,
        plan_id: str = "starter",
        interval: str = "month",
        status: str = "active",
        provider_subscription_id: Optional[str] = "sub_test123",
        provider_customer_id: Optional[str] = "cus_test123",
        cancel_at_period_end: bool = False,
        current_period_start: Optional[datetime] = None,
        current_period_end: Optional[datetime] = None,
        scheduled_change: Optional[ScheduledChange] = None,
        last_event_at: Optional[datetime] = None,
        version: int = 1,
    ) -> Subscription:
        """Insert a subscription row and return it as a domain model."""
        now = datetime.now(timezone.utc).replace(microsecond=0)
        entity = SubscriptionEntity(
            tenant_id=tenant_id,
            plan_id=plan_id,
            interval=interval,
            status=status,
            cancel_at_period_end=cancel_at_period_end,
            provider_subscription_id=provider_subscription_id,
            provider_customer_id=provider_customer_id,
            current_period_start=current_period_start or now - timedelta(days=5),
            current_period_end=current_period_end or now + timedelta(days=25),
            scheduled_plan_id=scheduled_change.target_plan_id
            if scheduled_change
            else None,
            scheduled_interval=scheduled_change.target_interval.value
            if scheduled_change
            else None,
            scheduled_effective_at=scheduled_change.effective_at
            if scheduled_change
            else None,
            scheduled_origin=scheduled_change.origin.value
            if scheduled_change
            else None,
            scheduled_schedule_id=scheduled_change.schedule_id
            if scheduled_change
            else None,
            last_event_at=last_event_at,
            version=version,
        )
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        subscription = SubscriptionRepository()._entity_to_domain(entity)
        await self.session.commit()
        return subscription
