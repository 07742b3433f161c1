"""
Stale pending order reconciliation worker.

Runs inside the backend process (started from the app lifespan) or as a
standalone process against the same database.
"""
import asyncio
import signal
from typing import Any, Optional

import structlog

from honey_store.config import get_settings
from honey_store.core.reconciliation import PendingOrderReconciler
from honey_store.database import (
    OrderStore,
    close_db,
    create_engine,
    create_session_factory,
    init_db,
)
from honey_store.monitoring.logging import setup_logging

logger = structlog.get_logger(__name__)


async def run_reconciliation_loop(
    reconciler: PendingOrderReconciler,
    interval_seconds: float,
    stop_event: Optional[asyncio.Event] = None,
) -> None:
    """
    Sweep stale pending orders every interval until stopped.

    Args:
        reconciler: Reconciler to run
        interval_seconds: Seconds between sweeps
        stop_event: Optional event that ends the loop when set
    """
    stop_event = stop_event or asyncio.Event()
    logger.info(
        "reconciliation_loop_started",
        interval_seconds=interval_seconds,
        timeout_seconds=reconciler.timeout_seconds,
    )

    try:
        while not stop_event.is_set():
            try:
                await reconciler.sweep()
            except Exception as e:
                logger.error("reconciliation_sweep_error", error=str(e))
                # Continue running even if one sweep fails

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                pass
    finally:
        logger.info("reconciliation_loop_stopped")


async def start_reconciliation_worker(interval_seconds: Optional[int] = None) -> None:
    """
    Start the standalone reconciliation worker.

    Args:
        interval_seconds: Seconds between sweeps (defaults to settings)
    """
    settings = get_settings()
    setup_logging(settings, service_name="reconciliation-worker")

    engine = create_engine(settings)
    await init_db(engine)
    reconciler = PendingOrderReconciler(
        OrderStore(create_session_factory(engine)),
        timeout_seconds=settings.stale_pending_timeout_seconds,
    )

    stop_event = asyncio.Event()

    def signal_handler(sig: int, frame: Any) -> None:
        logger.info("reconciliation_worker_shutdown_signal_received", signal=sig)
        stop_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        await run_reconciliation_loop(
            reconciler,
            interval_seconds or settings.reconciliation_interval_seconds,
            stop_event,
        )
    finally:
        await close_db(engine)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Stale pending order reconciliation worker")
    parser.add_argument(
        "--interval", type=int, default=None, help="Seconds between sweeps"
    )
    args = parser.parse_args()

    asyncio.run(start_reconciliation_worker(interval_seconds=args.interval))
