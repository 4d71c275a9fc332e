"""
Queue worker process.

Wires a QueueService from settings, registers the built-in handlers, and
runs it until SIGTERM/SIGINT, then drains in-flight jobs before exiting.
"""

import asyncio
import signal
from pathlib import Path

from prometheus_client import start_http_server

from jobqueue.config import QueueConfig, Settings, get_settings
from jobqueue.db import get_engine, get_session_factory, init_db
from jobqueue.observability.logging import bind_context, get_logger, setup_logging
from jobqueue.observability.metrics import get_metrics
from jobqueue.observability.tracing import setup_tracing
from jobqueue.queue.service import QueueService
from jobqueue.storage import FileJobStore, JobStore, MemoryJobStore, SqlJobStore
from jobqueue.worker.handlers import register_builtin_handlers

logger = get_logger(__name__)


async def build_store(settings: Settings) -> JobStore:
    """
    Create the job store selected by settings.storage_backend.

    The database backend creates its table on first use.
    """
    if settings.storage_backend == "file":
        return FileJobStore(Path(settings.storage_dir))

    if settings.storage_backend == "database":
        engine = get_engine(settings)
        await init_db(engine)
        return SqlJobStore(get_session_factory(engine))

    return MemoryJobStore()


async def build_queue(settings: Settings | None = None) -> QueueService:
    """Create a queue from settings with the built-in handlers registered."""
    settings = settings or get_settings()
    config = QueueConfig.from_settings(settings)
    store = await build_store(settings) if config.enable_persistence else None

    queue = QueueService(config=config, store=store, metrics=get_metrics())
    register_builtin_handlers(queue.registry)
    return queue


async def run_async() -> None:
    """Run the worker asynchronously."""
    settings = get_settings()
    setup_logging(settings)
    setup_tracing(settings)

    if settings.metrics_enabled:
        start_http_server(settings.prometheus_port)

    bind_context(service=settings.otel_service_name)
    queue = await build_queue(settings)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_event.set)

    await queue.start()
    logger.info(
        "Worker started",
        max_concurrent_jobs=queue.config.max_concurrent_jobs,
        storage_backend=settings.storage_backend,
    )

    await stop_event.wait()
    await queue.stop()
    logger.info("Worker stopped")


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
