"""
Repository for the webhook idempotency ledger.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from common.repositories.base import BaseRepository
from common.core.otel_axiom_exporter import get_logger, trace_span
from packages.subscriptions.models.database.webhook_event import WebhookEventEntity
from packages.subscriptions.models.domain.enums import WebhookEventStatus
from packages.subscriptions.models.domain.webhook_events import (
    WebhookEvent,
    WebhookEventCreateModel,
)

logger = get_logger(__name__)


class WebhookEventRepository(BaseRepository[WebhookEventEntity, WebhookEvent]):
    """Repository for ledger rows, keyed by provider event id."""

    def __init__(self):
        super().__init__(WebhookEventEntity, WebhookEvent)

    @trace_span
    async def get_by_provider_event_id(
        self, provider_event_id: str
    ) -> Optional[WebhookEvent]:
        return await self._fetch_one(
            select(WebhookEventEntity).where(
                WebhookEventEntity.provider_event_id == provider_event_id
            )
        )

    @trace_span
    async def insert_pending(
        self, provider_event_id: str, event_type: str, now: datetime
    ) -> Optional[WebhookEvent]:
        """
        Atomically insert a pending row.

        Returns:
            The new row, or None if the event id is already in the ledger
        """
        try:
            return await self.create(
                WebhookEventCreateModel(
                    provider_event_id=provider_event_id,
                    event_type=event_type,
                    first_seen_at=now,
                    claimed_at=now,
                )
            )
        except IntegrityError:
            logger.debug(
                f"Webhook event {provider_event_id} already in ledger",
                extra={"event_id": provider_event_id},
            )
            return None

    @trace_span
    async def reclaim(self, id: int, expected_attempts: int, now: datetime) -> bool:
        """
        Move a failed or abandoned row back to pending.

        Compare-and-swap on attempts so only one redelivery wins. Completed
        rows are never reclaimed.
        """
        async with self._get_session() as session:
            result = await session.execute(
                update(WebhookEventEntity)
                .where(
                    WebhookEventEntity.id == id,
                    WebhookEventEntity.attempts == expected_attempts,
                    WebhookEventEntity.status != WebhookEventStatus.COMPLETED.value,
                )
                .values(
                    status=WebhookEventStatus.PENDING.value,
                    attempts=WebhookEventEntity.attempts + 1,
                    claimed_at=now,
                    error_detail=None,
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    @trace_span
    async def mark_completed(self, id: int, now: datetime) -> None:
        async with self._get_session() as session:
            await session.execute(
                update(WebhookEventEntity)
                .where(
                    WebhookEventEntity.id == id,
                    WebhookEventEntity.status == WebhookEventStatus.PENDING.value,
                )
                .values(
                    status=WebhookEventStatus.COMPLETED.value,
                    completed_at=now,
                    error_detail=None,
                )
                .execution_options(synchronize_session=False)
            )

    @trace_span
    async def mark_failed(self, id: int, error_detail: str) -> None:
        async with self._get_session() as session:
            await session.execute(
                update(WebhookEventEntity)
                .where(
                    WebhookEventEntity.id == id,
                    WebhookEventEntity.status == WebhookEventStatus.PENDING.value,
                )
                .values(
                    status=WebhookEventStatus.FAILED.value,
                    error_detail=error_detail[:2000],
                )
                .execution_options(synchronize_session=False)
            )
