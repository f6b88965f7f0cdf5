"""
Process wiring for the job harvester.
"""
import asyncio
import signal
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog

from harvester.config import Settings, get_settings
from harvester.jobs.periodic_ingestion import PeriodicIngestionJob
from harvester.logging_config import configure_logging
from harvester.services.ingestion.orchestrator import IngestionOrchestrator
from harvester.storage import create_store

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def harvester_context(settings: Optional[Settings] = None) -> AsyncIterator[IngestionOrchestrator]:
    """Build store and orchestrator, and release them on exit."""
    settings = settings or get_settings()
    settings.validate_runtime()

    logger.info(
        "Initializing storage",
        backend=settings.storage_backend,
        url=settings.database_url if settings.storage_backend == "sql" else settings.supabase_url,
    )
    store = await create_store(settings)

    orchestrator = IngestionOrchestrator.from_settings(settings, store)
    orchestrator.initialize_sources(settings)

    try:
        yield orchestrator
    finally:
        await orchestrator.close()
        await store.close()


async def serve(settings: Optional[Settings] = None):
    """Run periodic ingestion until SIGINT/SIGTERM."""
    settings = settings or get_settings()
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Signal handlers are unavailable on some platforms (e.g. Windows)
            pass

    async with harvester_context(settings) as orchestrator:
        job = PeriodicIngestionJob(
            orchestrator,
            interval_minutes=settings.scraping_interval_minutes,
            metrics_interval_minutes=settings.metrics_interval_minutes,
        )

        # The first cycle runs inside start(); let a signal interrupt it
        start_task = asyncio.create_task(job.start())
        stop_task = asyncio.create_task(stop.wait())
        await asyncio.wait({start_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)

        if not stop.is_set():
            await stop.wait()

        logger.info("Received shutdown signal, shutting down gracefully")
        await job.stop()
        await asyncio.gather(start_task, return_exceptions=True)
        stop_task.cancel()

    logger.info("Job harvester shutdown complete")


def main():
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    asyncio.run(serve(settings))


if __name__ == "__main__":
    main()
