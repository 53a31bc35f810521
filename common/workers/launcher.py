"""
Common worker launcher utilities to reduce boilerplate code across workers.
"""

import asyncio
import logging
import signal
from typing import Optional, Any, Callable

from common.core.otel_axiom_exporter import _initialize_telemetry, get_logger


class WorkerLauncher:
    """Common worker launcher that handles boilerplate setup, signals, and lifecycle."""

    def __init__(self):
        self.logger = get_logger(__name__)
        self.worker_instance: Optional[Any] = None

    def _register_signal_handlers(self, loop: asyncio.AbstractEventLoop):
        """Stop the worker gracefully on SIGINT/SIGTERM."""

        def _handle(signum: int) -> None:
            self.logger.info(
                f"Received signal {signum}, initiating graceful shutdown..."
            )
            if self.worker_instance:
                loop.create_task(self.worker_instance.stop())

        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, _handle, signum)

    async def _run_worker_async(self, worker_instance: Any, worker_name: str):
        """Run worker with common lifecycle management."""
        self.worker_instance = worker_instance
        self._register_signal_handlers(asyncio.get_running_loop())

        try:
            self.logger.info(f"Starting {worker_name}...")
            await worker_instance.start()
        except Exception as e:
            self.logger.error(f"Worker failed with error: {e}", exc_info=True)
        finally:
            self.logger.info("Worker shutdown complete")

    def run(
        self,
        worker_factory: Callable,
        worker_name: str,
        log_level: Optional[str] = None,
        factory_args: tuple = (),
        factory_kwargs: dict = None,
    ):
        """
        Main entry point to run a worker.

        Args:
            worker_factory: Function/class that creates the worker instance
            worker_name: Human readable name for logging
            log_level: Optional logging level override (e.g. "DEBUG")
            factory_args: Args to pass to worker factory
            factory_kwargs: Kwargs to pass to worker factory
        """
        if factory_kwargs is None:
            factory_kwargs = {}

        _initialize_telemetry()
        if log_level:
            logging.getLogger().setLevel(getattr(logging, log_level))

        self.logger.info(f"Configuring {worker_name}...")
        worker_instance = worker_factory(*factory_args, **factory_kwargs)

        try:
            asyncio.run(self._run_worker_async(worker_instance, worker_name))
        except KeyboardInterrupt:
            self.logger.info("Final keyboard interrupt caught, exiting...")
