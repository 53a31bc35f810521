import argparse

from common.core.config import settings
from common.workers.launcher import WorkerLauncher
from packages.subscriptions.workers.reconciliation_worker import (
    ReconciliationSweepWorker,
)


def setup_cli():
    """Setup CLI arguments and return parsed args with factory parameters."""
    parser = argparse.ArgumentParser(description="Subscription Reconciliation Worker")
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.reconciliation_sweep_interval_seconds,
        help="Seconds between sweeps (default: from settings)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.reconciliation_batch_size,
        help="Subscriptions fetched per page (default: from settings)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )

    args = parser.parse_args()

    factory_kwargs = {"interval_seconds": args.interval, "batch_size": args.batch_size}

    return args, (), factory_kwargs


def main():
    """Main entry point with command-line argument support."""
    args, factory_args, factory_kwargs = setup_cli()

    WorkerLauncher().run(
        worker_factory=ReconciliationSweepWorker,
        worker_name="Reconciliation Worker",
        log_level=args.log_level,
        factory_args=factory_args,
        factory_kwargs=factory_kwargs,
    )


if __name__ == "__main__":
    main()
