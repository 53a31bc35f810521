import asyncio

import pytest
from unittest.mock import AsyncMock, patch

from common.workers.base_worker import PeriodicWorker
from packages.subscriptions.models.domain.reconciliation import SweepReport
from packages.subscriptions.workers.reconciliation_worker import (
    SWEEP_LOCK_KEY,
    ReconciliationSweepWorker,
)


class CountingWorker(PeriodicWorker):
    """Concrete PeriodicWorker that stops itself after a number of ticks."""

    def __init__(self, ticks: int = 3, fail_on_tick: int = None):
        super().__init__("counting", interval_seconds=0.01, worker_id="test_worker")
        self.ticks = ticks
        self.fail_on_tick = fail_on_tick
        self.runs = 0

    async def run_once(self):
        self.runs += 1
        if self.runs == self.fail_on_tick:
            raise RuntimeError("Simulated tick failure")
        if self.runs >= self.ticks:
            await self.stop()


class TestPeriodicWorker:
    @pytest.mark.asyncio
    async def test_runs_until_stopped(self):
        worker = CountingWorker(ticks=3)

        await asyncio.wait_for(worker.start(), timeout=2)

        assert worker.runs == 3
        assert worker.running is False

    @pytest.mark.asyncio
    async def test_failed_tick_does_not_stop_loop(self):
        worker = CountingWorker(ticks=3, fail_on_tick=1)

        await asyncio.wait_for(worker.start(), timeout=2)

        assert worker.runs == 3

    @pytest.mark.asyncio
    async def test_stop_interrupts_wait(self):
        worker = CountingWorker(ticks=100)
        worker.interval_seconds = 60

        task = asyncio.create_task(worker.start())
        await asyncio.sleep(0.05)
        await worker.stop()
        await asyncio.wait_for(task, timeout=2)

        assert worker.runs == 1

    @pytest.mark.asyncio
    async def test_cleanup_runs_when_setup_fails(self):
        worker = CountingWorker()

        with patch.object(
            worker.lock_provider, "connect", AsyncMock(side_effect=ConnectionError())
        ), patch.object(worker.lock_provider, "close", AsyncMock()) as close:
            with pytest.raises(ConnectionError):
                await worker.start()

        close.assert_awaited_once()
        assert worker.runs == 0


class TestReconciliationSweepWorker:
    @pytest.mark.asyncio
    async def test_run_once_sweeps_and_releases_lock(self, fake_payment_provider):
        worker = ReconciliationSweepWorker(interval_seconds=30, batch_size=10)
        report = SweepReport(checked=2, changed=[1])
        worker.reconciliation_service.reconcile_all = AsyncMock(return_value=report)

        result = await worker.run_once()

        assert result is report
        worker.reconciliation_service.reconcile_all.assert_awaited_once_with(10)
        assert await worker.lock_provider.is_held(SWEEP_LOCK_KEY) is False

    @pytest.mark.asyncio
    async def test_run_once_skips_when_another_sweep_holds_lock(
        self, fake_payment_provider
    ):
        worker = ReconciliationSweepWorker(interval_seconds=30)
        worker.reconciliation_service.reconcile_all = AsyncMock()
        await worker.lock_provider.acquire(SWEEP_LOCK_KEY, 30)

        result = await worker.run_once()

        assert result is None
        worker.reconciliation_service.reconcile_all.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lock_released_when_sweep_raises(self, fake_payment_provider):
        worker = ReconciliationSweepWorker(interval_seconds=30)
        worker.reconciliation_service.reconcile_all = AsyncMock(
            side_effect=RuntimeError("db down")
        )

        with pytest.raises(RuntimeError):
            await worker.run_once()

        assert await worker.lock_provider.is_held(SWEEP_LOCK_KEY) is False
