"""In-memory payment provider for tests."""

import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from typing import Optional

from packages.subscriptions.models.domain.enums import SubscriptionStatus
from packages.subscriptions.models.domain.provider_events import (
    ProviderSubscriptionSnapshot,
    SchedulePhase,
)
from packages.subscriptions.providers.payment.interface import (
    PaymentProviderInterface,
)


class FakePaymentProvider(PaymentProviderInterface):
    """
    Keeps provider subscriptions in a dict and records every call.

    fail_on maps a method name to the exception it raises. Setting gate makes
    every call wait on it after signalling entered, so tests can hold a call
    open while another one races it.
    """

    def __init__(self):
        self.subscriptions: dict[str, ProviderSubscriptionSnapshot] = {}
        self.schedules: dict[str, list[SchedulePhase]] = {}
        self.released_schedules: list[str] = []
        self.calls: list[tuple] = []
        self.fail_on: dict[str, Exception] = {}
        self.gate: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()
        self._ids = itertools.count(1)

    def add_subscription(
        self,
        subscription_id: str = "sub_test123",
        price_id: Optional[str] = "price_starter_month",
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        customer_id: str = "cus_test123",
        cancel_at_period_end: bool = False,
        schedule_id: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
        current_period_start: Optional[datetime] = None,
        current_period_end: Optional[datetime] = None,
    ) -> ProviderSubscriptionSnapshot:
        now = datetime.now(timezone.utc).replace(microsecond=0)
        snapshot = ProviderSubscriptionSnapshot(
            id=subscription_id,
            customer_id=customer_id,
            status=status,
            price_id=price_id,
            cancel_at_period_end=cancel_at_period_end,
            current_period_start=current_period_start or now - timedelta(days=5),
            current_period_end=current_period_end or now + timedelta(days=25),
            schedule_id=schedule_id,
            metadata=metadata or {},
        )
        self.subscriptions[subscription_id] = snapshot
        return snapshot

    def method_calls(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]

    async def _enter(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if name in self.fail_on:
            raise self.fail_on[name]

    def _update(self, subscription_id: str, **changes) -> ProviderSubscriptionSnapshot:
        snapshot = self.subscriptions[subscription_id].model_copy(update=changes)
        self.subscriptions[subscription_id] = snapshot
        return snapshot

    async def retrieve_subscription(
        self, subscription_id: str
    ) -> Optional[ProviderSubscriptionSnapshot]:
        await self._enter("retrieve_subscription", subscription_id)
        return self.subscriptions.get(subscription_id)

    async def update_subscription_price(
        self, subscription_id: str, price_id: str
    ) -> ProviderSubscriptionSnapshot:
        await self._enter("update_subscription_price", subscription_id, price_id)
        return self._update(subscription_id, price_id=price_id)

    async def set_cancel_at_period_end(
        self,
        subscription_id: str,
        cancel_at_period_end: bool,
        metadata: Optional[dict[str, str]] = None,
    ) -> ProviderSubscriptionSnapshot:
        await self._enter(
            "set_cancel_at_period_end", subscription_id, cancel_at_period_end, metadata
        )
        merged = dict(self.subscriptions[subscription_id].metadata)
        for key, value in (metadata or {}).items():
            if value == "":
                merged.pop(key, None)
            else:
                merged[key] = value
        return self._update(
            subscription_id,
            cancel_at_period_end=cancel_at_period_end,
            metadata=merged,
        )

    async def create_schedule_from_subscription(self, subscription_id: str) -> str:
        await self._enter("create_schedule_from_subscription", subscription_id)
        schedule_id = f"sub_sched_{next(self._ids)}"
        self.schedules[schedule_id] = []
        self._update(subscription_id, schedule_id=schedule_id)
        return schedule_id

    async def update_schedule_phases(
        self, schedule_id: str, phases: list[SchedulePhase]
    ) -> None:
        await self._enter("update_schedule_phases", schedule_id, phases)
        self.schedules[schedule_id] = list(phases)

    async def release_schedule(self, schedule_id: str) -> None:
        await self._enter("release_schedule", schedule_id)
        self.released_schedules.append(schedule_id)
        self.schedules.pop(schedule_id, None)
        for subscription_id, snapshot in list(self.subscriptions.items()):
            if snapshot.schedule_id == schedule_id:
                self._update(subscription_id, schedule_id=None)

    async def create_subscription(
        self,
        customer_id: str,
        price_id: str,
        tenant_id: int,
        idempotency_key: Optional[str] = None,
    ) -> ProviderSubscriptionSnapshot:
        await self._enter(
            "create_subscription", customer_id, price_id, tenant_id, idempotency_key
        )
        return self.add_subscription(
            subscription_id=f"sub_new_{next(self._ids)}",
            price_id=price_id,
            customer_id=customer_id,
            metadata={"tenant_id": str(tenant_id)},
        )

    async def health_check(self) -> bool:
        await self._enter("health_check")
        return True
