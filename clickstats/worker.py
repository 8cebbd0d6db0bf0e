"""Background worker: rolls up closed days of visits into daily summaries.

Run as a separate process:
    python -m clickstats.worker          # aggregate at startup, then hourly
    python -m clickstats.worker --once   # single run, exit code reports result
"""

import argparse
import asyncio
import logging
import signal
import sys

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from clickstats.core.config import settings, setup_logging
from clickstats.db.session import create_engine_from_settings
from clickstats.scheduler import JobScheduler
from clickstats.services.rollup_service import RollupAggregator

logger = logging.getLogger(__name__)


def build_aggregator(engine: AsyncEngine) -> RollupAggregator:
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return RollupAggregator(session_factory)


async def run_once(engine: AsyncEngine | None = None) -> int:
    """Run the aggregator a single time. Returns a process exit code."""
    owns_engine = engine is None
    engine = engine or create_engine_from_settings()
    try:
        days = await build_aggregator(engine).run()
    except Exception:
        logger.error("Aggregation failed")
        return 1
    finally:
        if owns_engine:
            await engine.dispose()
    logger.info("Aggregation finished, %d days aggregated", days)
    return 0


async def run_worker() -> None:
    """Main worker loop; runs until SIGINT or SIGTERM."""
    logger.info("Starting rollup worker")

    engine = create_engine_from_settings()
    aggregator = build_aggregator(engine)
    scheduler = JobScheduler(aggregator.run, settings.AGGREGATION_INTERVAL_SECONDS)

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.set)

    scheduler.start()
    await shutdown.wait()
    logger.info("Shutdown signal received")

    await scheduler.stop()
    await engine.dispose()
    logger.info("Worker shut down cleanly")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Daily click rollup worker")
    parser.add_argument(
        "--once",
        action="store_true",
        help="aggregate pending days once and exit",
    )
    args = parser.parse_args(argv)

    setup_logging()
    if args.once:
        return asyncio.run(run_once())
    asyncio.run(run_worker())
    return 0


def aggregate() -> int:
    """Console entry point: one aggregation run."""
    return main(["--once"])


if __name__ == "__main__":
    sys.exit(main())
