"""
Repository for the append-only usage log.
"""

from typing import Optional
from datetime import datetime
from sqlalchemy import select, func

from common.repositories.base import BaseRepository
from packages.subscriptions.models.database.usage import UsageRecordEntity
from packages.subscriptions.models.domain.usage import UsageRecord
from packages.subscriptions.models.domain.enums import UsageMetric
from common.core.otel_axiom_exporter import trace_span


class UsageRecordRepository(BaseRepository[UsageRecordEntity, UsageRecord]):
    """Repository for usage records. Rows are only ever inserted."""

    def __init__(self):
        super().__init__(UsageRecordEntity, UsageRecord)

    @trace_span
    async def sum_quantity(
        self,
        tenant_id: int,
        metric: UsageMetric,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> int:
        """
        Sum signed quantity for a metric in [start_date, end_date).

        Either bound may be omitted (gauge metrics sum over all time).
        """
        query = select(func.coalesce(func.sum(UsageRecordEntity.quantity), 0)).where(
            UsageRecordEntity.tenant_id == tenant_id,
            UsageRecordEntity.metric == metric.value,
        )
        if start_date is not None:
            query = query.where(UsageRecordEntity.recorded_at >= start_date)
        if end_date is not None:
            query = query.where(UsageRecordEntity.recorded_at < end_date)

        async with self._get_session() as session:
            result = await session.execute(query)
            return result.scalar_one() or 0

