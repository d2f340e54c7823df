"""Main entry point for the PhishRadar scoring service."""

import asyncio
import logging
import signal
import sys

from .api.server import ScoringServer
from .config import Config, load_config, validate_config
from .pipeline.orchestrator import ChainOrchestrator

logger = logging.getLogger(__name__)

CACHE_SWEEP_INTERVAL_SECONDS = 300


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for noisy in ("httpx", "httpcore", "aiohttp.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


async def _sweep_cache(orchestrator: ChainOrchestrator, stop: asyncio.Event) -> None:
    """Periodically drop expired domain-age entries."""
    while not stop.is_set():
        try:
            await asyncio.wait_for(stop.wait(), timeout=CACHE_SWEEP_INTERVAL_SECONDS)
        except asyncio.TimeoutError:
            removed = orchestrator.cache.sweep()
            if removed:
                logger.info("Swept %d expired domain-age entries", removed)


async def run_service(config: Config) -> None:
    """Run the scoring API until SIGINT/SIGTERM."""
    orchestrator = ChainOrchestrator.from_config(config)
    server = ScoringServer(config, orchestrator)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await server.start()
    sweeper = asyncio.create_task(_sweep_cache(orchestrator, stop))
    try:
        await stop.wait()
    finally:
        logger.info("Shutting down scoring service")
        sweeper.cancel()
        await server.stop()


def run() -> None:
    """Console script entry point."""
    config = load_config()
    configure_logging(config.log_level)

    validation_errors = validate_config(config)
    if validation_errors:
        for err in validation_errors:
            logger.error(err)
        sys.exit(1)

    asyncio.run(run_service(config))


if __name__ == "__main__":
    run()
