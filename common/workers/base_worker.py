import asyncio
from abc import ABC, abstractmethod
from typing import Optional
from uuid import uuid4

from common.providers.locking.factory import get_lock_provider
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


class PeriodicWorker(ABC):
    """Base worker that runs a unit of work on a fixed interval until stopped."""

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        worker_id: Optional[str] = None,
    ):
        self.name = name
        self.interval_seconds = interval_seconds
        self.worker_id = worker_id or f"{name}_worker_{uuid4()}"
        self.lock_provider = get_lock_provider()
        self.running = False
        self._stop_event = asyncio.Event()

    async def setup(self):
        """Initialize worker dependencies."""
        try:
            await self.lock_provider.connect()
            logger.info(f"Worker {self.worker_id} setup completed")
        except Exception as e:
            logger.error(f"Error setting up worker {self.worker_id}: {e}")
            raise

    async def cleanup(self):
        """Cleanup worker resources."""
        try:
            await self.lock_provider.close()
            logger.info(f"Worker {self.worker_id} cleanup completed")
        except Exception as e:
            logger.error(f"Error cleaning up worker {self.worker_id}: {e}")

    async def start(self):
        """Run the work loop until stop() is called."""
        if self.running:
            logger.warning(f"Worker {self.worker_id} is already running")
            return

        self.running = True
        self._stop_event.clear()
        logger.info(
            f"Starting worker {self.worker_id} every {self.interval_seconds}s"
        )

        try:
            await self.setup()
            while self.running:
                try:
                    await self.run_once()
                except Exception as e:
                    # One failed tick must not kill the loop
                    logger.error(
                        f"Error in worker {self.worker_id} tick: {e}", exc_info=True
                    )
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=self.interval_seconds
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            self.running = False
            await self.cleanup()

    async def stop(self):
        """Stop the worker."""
        self.running = False
        self._stop_event.set()
        logger.info(f"Stopping worker {self.worker_id}")

    @abstractmethod
    async def run_once(self):
        """Perform one unit of work. Must be implemented by subclasses."""
        pass
