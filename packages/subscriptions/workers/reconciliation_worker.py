"""
Periodic reconciliation sweep.

Every replica may run this worker; a sweep lock keeps one sweep active at a
time across the fleet.
"""

from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger
from common.workers.base_worker import PeriodicWorker
from packages.subscriptions.models.domain.reconciliation import SweepReport
from packages.subscriptions.services.reconciliation_service import (
    ReconciliationService,
)

logger = get_logger(__name__)

SWEEP_LOCK_KEY = "subscriptions:reconciliation_sweep"


class ReconciliationSweepWorker(PeriodicWorker):
    """Runs reconcile_all on an interval."""

    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        batch_size: Optional[int] = None,
    ):
        super().__init__(
            name="reconciliation",
            interval_seconds=interval_seconds
            or settings.reconciliation_sweep_interval_seconds,
        )
        self.batch_size = batch_size or settings.reconciliation_batch_size
        self.reconciliation_service = ReconciliationService()

    async def run_once(self) -> Optional[SweepReport]:
        token = await self.lock_provider.acquire(
            SWEEP_LOCK_KEY, ttl_seconds=self.interval_seconds
        )
        if token is None:
            logger.info(
                f"Worker {self.worker_id} skipping sweep, another sweep is running"
            )
            return None

        try:
            return await self.reconciliation_service.reconcile_all(self.batch_size)
        finally:
            await self.lock_provider.release(SWEEP_LOCK_KEY, token)
