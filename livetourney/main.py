"""
Runtime process entry point.

    python -m livetourney.main

Configures logging, wires the runtime from settings (Redis when ``REDIS_URL``
is set, in-memory otherwise) and drives the clock ticker until SIGINT/SIGTERM.
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from livetourney.config import Settings, get_settings
from livetourney.logging_config import configure_logging_from_settings, get_logger
from livetourney.tournament.distributed_lock import DistributedLockManager
from livetourney.tournament.engine import TournamentRuntime, create_runtime
from livetourney.tournament.repository import RedisTournamentRepository
from livetourney.tournament.ticker import ClockTicker

logger = get_logger(__name__)


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(
    settings: Optional[Settings] = None,
) -> AsyncGenerator[TournamentRuntime, None]:
    """Start the runtime and its ticker; release locks and connections on exit."""
    settings = settings or get_settings()
    configure_logging_from_settings(settings)

    runtime = create_runtime(settings)
    ticker = ClockTicker(runtime)

    logger.info(
        "runtime_starting",
        app_env=settings.app_env,
        storage="redis" if settings.redis_url else "memory",
        tick_interval_seconds=ticker.interval_seconds,
    )
    await ticker.start()

    try:
        yield runtime
    finally:
        await ticker.stop()

        if isinstance(runtime.lock_manager, DistributedLockManager):
            released = await runtime.lock_manager.cleanup_all()
            logger.info("locks_released", count=released)
        if isinstance(runtime.repository, RedisTournamentRepository):
            await runtime.repository.redis.aclose()

        logger.info("runtime_stopped", ticks=ticker.ticks)


async def serve(
    settings: Optional[Settings] = None,
    stop_event: Optional[asyncio.Event] = None,
) -> None:
    """Run until ``stop_event`` is set (by default on SIGINT/SIGTERM)."""
    if stop_event is None:
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

    async with lifespan(settings):
        await stop_event.wait()


def main() -> None:
    asyncio.run(serve())


if __name__ == "__main__":
    main()
