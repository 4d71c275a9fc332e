"""
Queue facade.

The public surface of the job queue. A QueueService is an ordinary object
owned by whoever wires up the application; pass it where it is needed.
"""

import logging
from collections.abc import Callable
from typing import Any

from jobqueue.config import QueueConfig
from jobqueue.constants import DEFAULT_PRIORITY
from jobqueue.events import EventBus, EventCallback
from jobqueue.exceptions import InvalidJobError
from jobqueue.observability.metrics import MetricsCollector, get_metrics
from jobqueue.queue.dispatcher import Dispatcher
from jobqueue.queue.registry import HandlerRegistry, JobHandler
from jobqueue.storage.base import JobStore
from jobqueue.types.events import QueueEvent
from jobqueue.types.job import Job, QueueStats

module_logger = logging.getLogger(__name__)


class QueueService:
    """
    In-process background job queue.

    Example:
        queue = QueueService(QueueConfig(max_concurrent_jobs=2))
        queue.register_handler("email", send_email)
        await queue.start()
        job_id = await queue.submit("email", {"to": "a@x.com"})
        ...
        await queue.stop()
    """

    def __init__(
        self,
        config: QueueConfig | None = None,
        store: JobStore | None = None,
        registry: HandlerRegistry | None = None,
        events: EventBus | None = None,
        metrics: MetricsCollector | None = None,
        logger: logging.Logger | None = None,
    ):
        """
        Initialize the queue.

        Args:
            config: Queue configuration. Defaults to QueueConfig().
            store: Persistence adapter. Required when persistence is enabled.
            registry: Handler registry. A fresh one is created if omitted.
            events: Event bus. A fresh one is created if omitted.
            metrics: Metrics collector. Defaults to the process-wide one.
            logger: Logger for queue activity.
        """
        self.config = config or QueueConfig()
        self.registry = registry or HandlerRegistry()
        self.events = events or EventBus()
        self._log = logger or module_logger
        self._starting = False
        self._dispatcher = Dispatcher(
            config=self.config,
            registry=self.registry,
            events=self.events,
            metrics=metrics or get_metrics(),
            store=store,
            logger=logger,
        )

        self._log.debug("QueueService initialized", extra=self.config.model_dump())

    @property
    def is_running(self) -> bool:
        return self._dispatcher.is_running

    @property
    def active_jobs(self) -> int:
        """Number of occupied concurrency slots."""
        return self._dispatcher.active_jobs

    def register_handler(self, job_type: str, handler: JobHandler) -> None:
        """Register the handler for a job type, replacing any previous one."""
        self.registry.register(job_type, handler)

    def subscribe(self, event_type: str, callback: EventCallback) -> Callable[[], None]:
        """
        Subscribe to queue events ("job:added", ..., or "*").

        Returns:
            A function that removes the subscription.
        """
        return self.events.subscribe(event_type, callback)

    async def submit(
        self,
        job_type: str,
        payload: Any = None,
        priority: int = DEFAULT_PRIORITY,
    ) -> str:
        """
        Add a job to the queue.

        The job type does not need a handler yet; one may be registered
        before the job is dispatched. If the queue is running the job is
        dispatched right away when a slot is free.

        Args:
            job_type: Selects the handler.
            payload: Opaque data handed to the handler.
            priority: Higher runs sooner.

        Returns:
            The new job id.

        Raises:
            InvalidJobError: If job_type or priority is malformed.
        """
        if not isinstance(job_type, str) or not job_type.strip():
            raise InvalidJobError("job_type must be a non-empty string")
        if not isinstance(priority, int) or isinstance(priority, bool):
            raise InvalidJobError(f"priority must be an integer, got {priority!r}")

        job = Job.create(
            job_type=job_type,
            payload=payload,
            priority=priority,
            max_retries=self.config.max_retries,
        )
        await self._dispatcher.add(job)

        if self.is_running:
            self._dispatcher.dispatch()

        return job.id

    async def start(self) -> None:
        """
        Start processing jobs.

        Recovers persisted jobs first when persistence is enabled. Calling
        start on a running queue does nothing.
        """
        if self.is_running or self._starting:
            self._log.warning("Queue is already running")
            return

        self._log.debug("Starting queue processing")
        # Recovery awaits the store; a second start() must not slip in meanwhile
        self._starting = True
        try:
            if self.config.enable_persistence:
                await self._dispatcher.load_persisted_jobs()

            self.events.publish(QueueEvent.queue_started())
            self._dispatcher.start()
        finally:
            self._starting = False

    async def stop(self) -> None:
        """
        Stop processing jobs.

        Drains: waits for every in-flight job to finish. Calling stop on a
        stopped queue does nothing.
        """
        if not self.is_running:
            self._log.warning("Queue is not running")
            return

        self._log.info("Stopping queue processing")
        await self._dispatcher.stop()

        self.events.publish(QueueEvent.queue_stopped())
        self._log.info("Queue processing stopped")

    async def load_persisted_jobs(self) -> int:
        """
        Load persisted jobs into memory without starting dispatch.

        Returns:
            Number of jobs loaded.
        """
        return await self._dispatcher.load_persisted_jobs()

    async def wait_until_idle(self) -> None:
        """Wait until no job is running and no store write is pending."""
        await self._dispatcher.wait_until_idle()
        await self.events.drain()

    def get_job(self, job_id: str) -> Job | None:
        """Get a job by id. Finished jobs are kept only for the retention window."""
        return self._dispatcher.get(job_id)

    def get_all_jobs(self) -> list[Job]:
        """Get all jobs currently held in memory."""
        return self._dispatcher.all()

    def get_stats(self) -> QueueStats:
        """Get queue statistics."""
        return self._dispatcher.stats()

    def clear_finished_jobs(self) -> int:
        """
        Remove completed and failed jobs from memory.

        Returns:
            Number of jobs removed.
        """
        return self._dispatcher.clear_finished()
