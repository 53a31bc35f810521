"""
Repository for subscription management.
"""

from typing import Any, Optional
from sqlalchemy import select, update

from common.repositories.base import BaseRepository
from packages.subscriptions.models.database.subscription import SubscriptionEntity
from packages.subscriptions.models.domain.subscription import (
    ScheduledChange,
    Subscription,
    SubscriptionState,
)
from packages.subscriptions.models.domain.enums import SubscriptionStatus
from common.core.otel_axiom_exporter import trace_span

_TERMINAL_STATUSES = [
    status.value for status in SubscriptionStatus if status.is_terminal()
]


def _state_to_columns(state: SubscriptionState) -> dict[str, Any]:
    """Flatten a state into entity columns, embedding the scheduled change."""
    change = state.scheduled_change
    return {
        "tenant_id": state.tenant_id,
        "plan_id": state.plan_id,
        "interval": state.interval.value,
        "status": state.status.value,
        "cancel_at_period_end": state.cancel_at_period_end,
        "provider_subscription_id": state.provider_subscription_id,
        "provider_customer_id": state.provider_customer_id,
        "current_period_start": state.current_period_start,
        "current_period_end": state.current_period_end,
        "scheduled_plan_id": change.target_plan_id if change else None,
        "scheduled_interval": change.target_interval.value if change else None,
        "scheduled_effective_at": change.effective_at if change else None,
        "scheduled_origin": change.origin.value if change else None,
        "scheduled_schedule_id": change.schedule_id if change else None,
        "last_event_at": state.last_event_at,
        "ended_subscription_id": state.ended_subscription_id,
        "released_schedule_id": state.released_schedule_id,
        "schedule_released_at": state.schedule_released_at,
    }


class SubscriptionRepository(BaseRepository[SubscriptionEntity, Subscription]):
    """
    Repository for tenant subscriptions.

    Writes go through compare_and_swap so a stale writer never overwrites a
    newer state.
    """

    def __init__(self):
        super().__init__(SubscriptionEntity, Subscription)

    def _entity_to_domain(self, entity: SubscriptionEntity) -> Subscription:
        scheduled_change = None
        if entity.scheduled_plan_id:
            scheduled_change = ScheduledChange(
                target_plan_id=entity.scheduled_plan_id,
                target_interval=entity.scheduled_interval,
                effective_at=entity.scheduled_effective_at,
                origin=entity.scheduled_origin,
                schedule_id=entity.scheduled_schedule_id,
            )
        return Subscription(
            id=entity.id,
            tenant_id=entity.tenant_id,
            plan_id=entity.plan_id,
            interval=entity.interval,
            status=entity.status,
            current_period_start=entity.current_period_start,
            current_period_end=entity.current_period_end,
            cancel_at_period_end=entity.cancel_at_period_end,
            provider_subscription_id=entity.provider_subscription_id,
            provider_customer_id=entity.provider_customer_id,
            payment_provider=entity.payment_provider,
            scheduled_change=scheduled_change,
            last_event_at=entity.last_event_at,
            ended_subscription_id=entity.ended_subscription_id,
            released_schedule_id=entity.released_schedule_id,
            schedule_released_at=entity.schedule_released_at,
            version=entity.version,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    @trace_span
    async def get_by_tenant_id(self, tenant_id: int) -> Optional[Subscription]:
        """Get the subscription row for a tenant, if one exists."""
        return await self._fetch_one(
            select(SubscriptionEntity).where(SubscriptionEntity.tenant_id == tenant_id)
        )

    @trace_span
    async def get_by_provider_subscription_id(
        self, provider_subscription_id: str
    ) -> Optional[Subscription]:
        return await self._fetch_one(
            select(SubscriptionEntity).where(
                SubscriptionEntity.provider_subscription_id == provider_subscription_id
            )
        )

    @trace_span
    async def get_by_ended_subscription_id(
        self, provider_subscription_id: str
    ) -> Optional[Subscription]:
        """Find the tenant whose most recently ended provider subscription this was."""
        return await self._fetch_one(
            select(SubscriptionEntity).where(
                SubscriptionEntity.ended_subscription_id == provider_subscription_id
            )
        )

    @trace_span
    async def create_from_state(self, state: SubscriptionState) -> Subscription:
        """Insert the first row for a tenant. Fails on the tenant unique constraint."""
        db_obj = SubscriptionEntity(**_state_to_columns(state), version=1)
        async with self._get_session() as session:
            session.add(db_obj)
            await session.flush()
            await session.refresh(db_obj)
            return self._entity_to_domain(db_obj)

    @trace_span
    async def compare_and_swap(
        self, subscription_id: int, expected_version: int, state: SubscriptionState
    ) -> Optional[Subscription]:
        """
        Write state only if the row is still at expected_version.

        Returns:
            The updated subscription, or None if another writer got there first
        """
        async with self._get_session() as session:
            result = await session.execute(
                update(SubscriptionEntity)
                .where(
                    SubscriptionEntity.id == subscription_id,
                    SubscriptionEntity.version == expected_version,
                )
                .values(
                    **_state_to_columns(state),
                    version=SubscriptionEntity.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None

            refreshed = await session.execute(
                select(SubscriptionEntity)
                .where(SubscriptionEntity.id == subscription_id)
                .execution_options(populate_existing=True)
            )
            return self._entity_to_domain(refreshed.scalar_one())

    @trace_span
    async def list_reconcilable(
        self, after_id: int = 0, limit: int = 100
    ) -> list[Subscription]:
        """Provider-linked, non-terminal subscriptions in id order (keyset paging)."""
        return await self._fetch_all(
            select(SubscriptionEntity)
            .where(
                SubscriptionEntity.id > after_id,
                SubscriptionEntity.provider_subscription_id.is_not(None),
                SubscriptionEntity.status.not_in(_TERMINAL_STATUSES),
            )
            .order_by(SubscriptionEntity.id)
            .limit(limit)
        )
