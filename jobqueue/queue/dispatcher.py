"""
Job dispatcher.

Selects the next eligible job, enforces the concurrency ceiling, runs
handlers as independent asyncio tasks, and applies the retry and
dead-letter policy. All selection and claiming happens synchronously on
the event loop, so no two selection passes interleave and the active
counter always agrees with the claimed jobs without a lock.
"""

import asyncio
import inspect
import logging
import time
from typing import Any

from opentelemetry.trace import Status, StatusCode

from jobqueue.config import QueueConfig
from jobqueue.constants import (
    ACTIVE_KEY_PATTERN,
    ACTIVE_KEY_PREFIX,
    DEAD_LETTER_KEY_PREFIX,
    SPAN_EXECUTE_JOB,
    SPAN_RECOVER_JOBS,
    FailureReason,
    JobStatus,
)
from jobqueue.events import EventBus
from jobqueue.exceptions import HandlerExecutionError, UnregisteredHandlerError
from jobqueue.observability.logging import job_log_context
from jobqueue.observability.metrics import MetricsCollector
from jobqueue.observability.tracing import get_tracer, set_span_attributes
from jobqueue.queue.registry import HandlerRegistry, JobHandler
from jobqueue.storage.base import JobStore, Record
from jobqueue.types.events import QueueEvent
from jobqueue.types.job import Job, JobResult, QueueStats, utcnow

module_logger = logging.getLogger(__name__)


def active_key(job_id: str) -> str:
    """Store key of a job's active-queue record."""
    return f"{ACTIVE_KEY_PREFIX}{job_id}"


def dead_letter_key(job_id: str) -> str:
    """Store key of a job's dead-letter record."""
    return f"{DEAD_LETTER_KEY_PREFIX}{job_id}_{int(time.time() * 1000)}"


class Dispatcher:
    """
    Owns the job table and drives every job state transition.

    Features:
    - Priority selection (highest first, FIFO within a priority)
    - Bounded concurrency with immediate re-dispatch when a slot frees
    - Retry up to max_retries, then dead-letter
    - Write-through persistence and restart recovery
    - Periodic poll as a safety net for missed dispatch triggers
    """

    def __init__(
        self,
        config: QueueConfig,
        registry: HandlerRegistry,
        events: EventBus,
        metrics: MetricsCollector,
        store: JobStore | None = None,
        logger: logging.Logger | None = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            config: Queue configuration.
            registry: Where handlers are looked up at dispatch time.
            events: Bus that receives job and queue events.
            metrics: Metrics collector.
            store: Persistence adapter, required when persistence is enabled.
            logger: Logger for state transitions. Defaults to this module's.
        """
        if config.enable_persistence and store is None:
            raise ValueError("enable_persistence requires a job store")

        self.config = config
        self._registry = registry
        self._events = events
        self._metrics = metrics
        self._store = store
        self._log = logger or module_logger

        self._jobs: dict[str, Job] = {}
        self._active = 0
        self._running = False
        self._poll_task: asyncio.Task | None = None
        self._job_tasks: set[asyncio.Task] = set()
        self._io_tasks: set[asyncio.Task] = set()
        self._purge_timers: dict[str, asyncio.TimerHandle] = {}
        # Serializes store writes so they land in mutation order
        self._store_lock = asyncio.Lock()

    @property
    def persistence_enabled(self) -> bool:
        return self.config.enable_persistence and self._store is not None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_jobs(self) -> int:
        return self._active

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin dispatching and start the poll loop."""
        self._running = True
        self._poll_task = asyncio.create_task(self._poll_loop(), name="jobqueue-poll")

    async def stop(self) -> None:
        """
        Stop dispatching and drain.

        Waits for every in-flight handler and pending store write. Nothing
        is cancelled; a handler that never returns blocks this forever.
        """
        self._running = False

        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        if self._job_tasks:
            self._log.info(f"Waiting for {len(self._job_tasks)} jobs to complete")
        await self.wait_until_idle()

    async def wait_until_idle(self) -> None:
        """Wait until no handler run or store write is in flight."""
        while self._job_tasks or self._io_tasks:
            await asyncio.gather(
                *self._job_tasks,
                *self._io_tasks,
                return_exceptions=True,
            )

    async def _poll_loop(self) -> None:
        """Re-run selection every polling interval, starting immediately."""
        while self._running:
            try:
                self.dispatch()
            except Exception as e:
                self._log.exception(f"Error in dispatch loop: {e}")
            await asyncio.sleep(self.config.polling_interval)

    # ------------------------------------------------------------------
    # Job table
    # ------------------------------------------------------------------

    async def add(self, job: Job) -> None:
        """Persist a new pending job, then make it visible for selection."""
        await self._save(job.id, job.to_record())

        self._jobs[job.id] = job
        self._metrics.record_job_submitted(job.type)
        self._log.info(
            f"Added job {job.id} of type {job.type}",
            extra={"job_id": job.id, "job_type": job.type, "priority": job.priority},
        )
        self._events.publish(QueueEvent.job_added(job))
        self._update_gauges()

    def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def all(self) -> list[Job]:
        return list(self._jobs.values())

    def stats(self) -> QueueStats:
        """Count jobs by status. The partition always sums to total."""
        counts = {status: 0 for status in JobStatus}
        for job in self._jobs.values():
            counts[job.status] += 1

        return QueueStats(
            total=len(self._jobs),
            pending=counts[JobStatus.PENDING],
            processing=counts[JobStatus.PROCESSING],
            completed=counts[JobStatus.COMPLETED],
            failed=counts[JobStatus.FAILED],
            active_jobs=self._active,
        )

    def clear_finished(self) -> int:
        """Drop completed and failed jobs from memory now."""
        finished = [job_id for job_id, job in self._jobs.items() if job.is_finished]
        for job_id in finished:
            timer = self._purge_timers.pop(job_id, None)
            if timer is not None:
                timer.cancel()
            del self._jobs[job_id]

        self._log.info("Cleared finished jobs", extra={"count": len(finished)})
        self._update_gauges()
        return len(finished)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def dispatch(self) -> int:
        """
        Fill free slots with the best pending jobs.

        Runs without awaiting, so the capacity check, the choice of job,
        and the claim are one atomic step on the event loop.

        Returns:
            Number of jobs started.
        """
        started = 0

        while self._running:
            if self._active >= self.config.max_concurrent_jobs:
                self._log.debug(
                    f"Max concurrent jobs reached ({self._active}/{self.config.max_concurrent_jobs})"
                )
                break

            job = self._next_pending_job()
            if job is None:
                self._log.debug("No pending jobs found")
                break

            handler = self._registry.get(job.type)
            if handler is None:
                self._fail_unregistered(job)
                continue

            self._claim(job)
            task = asyncio.create_task(self._run_job(job, handler), name=f"job-{job.id}")
            self._job_tasks.add(task)
            task.add_done_callback(self._job_tasks.discard)
            started += 1

        self._update_gauges()
        return started

    def _next_pending_job(self) -> Job | None:
        """Highest priority first, then earliest created_at, then submission order."""
        pending = [job for job in self._jobs.values() if job.status == JobStatus.PENDING]
        if not pending:
            return None
        # min() keeps the first of equal keys, i.e. dict insertion order
        return min(pending, key=lambda job: (-job.priority, job.created_at))

    def _claim(self, job: Job) -> None:
        now = utcnow()
        job.status = JobStatus.PROCESSING
        job.processed_at = now
        job.updated_at = now
        self._active += 1

        self._log.info(
            f"Processing job {job.id} ({job.type}), Active: {self._active}",
            extra={"job_id": job.id, "attempt": job.attempt},
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _run_job(self, job: Job, handler: JobHandler) -> None:
        """
        Run one claimed job to its next state.

        The slot is released and selection re-run as soon as the new
        state is set; the store write for it follows in order.
        """
        released = False
        try:
            await self._save(job.id, job.to_record())
            self._events.publish(QueueEvent.job_started(job))

            started = time.perf_counter()
            error = await self._execute(job, handler)
            duration = time.perf_counter() - started

            if error is None:
                self._complete(job)
            else:
                self._handle_failure(job, error)

            self._metrics.record_job_duration(
                job.type, "success" if error is None else "failure", duration
            )
            record = job.to_record()

            released = True
            self._release()

            if job.status == JobStatus.FAILED:
                await self._dead_letter(job.id, record)
            else:
                await self._save(job.id, record)
        finally:
            if not released:
                # Cancelled from outside; never leave the job claimed without a slot
                if job.status == JobStatus.PROCESSING:
                    cancelled = HandlerExecutionError("Job execution was cancelled")
                    self._handle_failure(job, cancelled)
                self._release()

    async def _execute(self, job: Job, handler: JobHandler) -> Exception | None:
        """
        Invoke the handler.

        Returns:
            None on success, otherwise the failure. A JobResult with
            success=False is turned into HandlerExecutionError.
        """
        with (
            get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span,
            job_log_context(job.id, job.type, job.attempt),
        ):
            set_span_attributes(
                span,
                {"job.id": job.id, "job.type": job.type, "job.attempt": job.attempt},
            )
            try:
                result: Any = handler(job)
                if inspect.isawaitable(result):
                    result = await result
                if isinstance(result, JobResult) and not result.success:
                    raise HandlerExecutionError(result.error or "Handler reported failure")
            except asyncio.CancelledError:
                # Only our own cancellation propagates; a handler that awaited a
                # cancelled task has failed its attempt
                if asyncio.current_task().cancelling():
                    raise
                error = HandlerExecutionError("Handler was cancelled")
                span.record_exception(error)
                span.set_status(Status(StatusCode.ERROR, str(error)))
                return error
            except Exception as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                return e
        return None

    def _release(self) -> None:
        self._active -= 1
        if self._running:
            self.dispatch()
        else:
            self._update_gauges()

    def _complete(self, job: Job) -> None:
        job.status = JobStatus.COMPLETED
        job.updated_at = utcnow()

        self._log.info(f"Job {job.id} completed successfully", extra={"job_id": job.id})
        self._metrics.record_job_finished(job.type, job.status.value)
        self._events.publish(QueueEvent.job_completed(job))
        self._schedule_purge(job.id)

    def _handle_failure(self, job: Job, error: Exception) -> None:
        """Send the job back to pending while retry budget remains, else fail it."""
        message = str(error) or type(error).__name__
        job.error = message
        job.updated_at = utcnow()

        self._log.error(
            f"Job {job.id} failed: {message}",
            extra={"job_id": job.id, "attempt": job.attempt},
        )

        if job.retries < job.max_retries:
            # Priority and created_at are untouched so the job keeps its place
            job.retries += 1
            job.status = JobStatus.PENDING
            self._log.info(
                f"Job {job.id} will be retried ({job.retries}/{job.max_retries})",
                extra={"job_id": job.id},
            )
            self._metrics.record_job_retry(job.type)
            self._events.publish(QueueEvent.job_retry(job))
        else:
            self._fail(job, message, FailureReason.RETRIES_EXHAUSTED)

    def _fail_unregistered(self, job: Job) -> None:
        """Fail a job whose type has no handler. No retry is consumed."""
        error = UnregisteredHandlerError(job.type)
        self._log.error(str(error), extra={"job_id": job.id})
        self._fail(job, str(error), FailureReason.UNREGISTERED_HANDLER)
        self._spawn_io(self._dead_letter(job.id, job.to_record()))

    def _fail(self, job: Job, message: str, reason: FailureReason) -> None:
        job.status = JobStatus.FAILED
        job.error = message
        job.updated_at = utcnow()

        self._log.error(
            f"Job {job.id} failed permanently: {message}",
            extra={"job_id": job.id, "reason": reason.value, "retries": job.retries},
        )
        self._metrics.record_job_finished(job.type, job.status.value)
        self._events.publish(QueueEvent.job_failed(job, reason))
        self._schedule_purge(job.id)

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def _schedule_purge(self, job_id: str) -> None:
        loop = asyncio.get_running_loop()
        self._purge_timers[job_id] = loop.call_later(
            self.config.finished_job_ttl, self._purge, job_id
        )

    def _purge(self, job_id: str) -> None:
        self._purge_timers.pop(job_id, None)
        job = self._jobs.get(job_id)
        if job is None or not job.is_finished:
            return

        del self._jobs[job_id]
        self._log.debug(f"Purged finished job {job_id}", extra={"job_id": job_id})
        # Failed records already left the active keyspace when dead-lettered
        if job.status == JobStatus.COMPLETED and self.persistence_enabled:
            self._spawn_io(self._delete(active_key(job_id)))

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _spawn_io(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._io_tasks.add(task)
        task.add_done_callback(self._io_tasks.discard)

    async def _save(self, job_id: str, record: Record) -> bool:
        if not self.persistence_enabled:
            return False
        return await self._write("save", active_key(job_id), record)

    async def _delete(self, key: str) -> bool:
        return await self._write("delete", key)

    async def _dead_letter(self, job_id: str, record: Record) -> None:
        """Archive under a failed_ key, then drop the active record."""
        if not self.persistence_enabled:
            return
        if await self._write("save", dead_letter_key(job_id), record):
            await self._delete(active_key(job_id))
            self._log.info(
                f"Moved failed job {job_id} to dead-letter queue",
                extra={"job_id": job_id},
            )

    async def _write(self, operation: str, key: str, *args: Any) -> bool:
        """
        Run one store write. Failures are logged and counted, never raised;
        the in-memory transition being mirrored stands either way.
        """
        async with self._store_lock:
            try:
                await getattr(self._store, operation)(key, *args)
            except Exception as e:
                self._log.error(
                    f"Failed to persist job: {e}",
                    extra={"operation": operation, "key": key},
                )
                self._metrics.record_persistence_error(operation)
                return False
        return True

    async def load_persisted_jobs(self) -> int:
        """
        Load active-queue records from the store into memory.

        Jobs found processing are reset to pending: the previous process
        never recorded them completed, so they run again (at-least-once).
        Jobs already in memory are left alone; unreadable records are
        logged and skipped.

        Returns:
            Number of jobs loaded.
        """
        if not self.persistence_enabled:
            return 0

        with get_tracer().start_as_current_span(SPAN_RECOVER_JOBS):
            try:
                keys = await self._store.list(ACTIVE_KEY_PATTERN)
            except Exception as e:
                self._log.error(f"Failed to load persisted jobs: {e}")
                self._metrics.record_persistence_error("list")
                return 0

            loaded: list[Job] = []
            reset: list[Job] = []
            for key in keys:
                try:
                    job = Job.from_record(await self._store.read(key))
                except Exception as e:
                    self._log.error(f"Failed to load job from {key}: {e}", extra={"key": key})
                    self._metrics.record_persistence_error("read")
                    continue

                if job.id in self._jobs:
                    continue

                if job.status == JobStatus.PROCESSING:
                    job.status = JobStatus.PENDING
                    job.updated_at = utcnow()
                    reset.append(job)
                loaded.append(job)

            loaded.sort(key=lambda job: job.created_at)
            for job in loaded:
                self._jobs[job.id] = job
                if job.is_finished:
                    self._schedule_purge(job.id)

            for job in reset:
                await self._save(job.id, job.to_record())

        self._log.info(
            f"Loaded {len(loaded)} persisted jobs",
            extra={"loaded": len(loaded), "reset_to_pending": len(reset)},
        )
        self._update_gauges()
        return len(loaded)

    def _update_gauges(self) -> None:
        pending = sum(1 for job in self._jobs.values() if job.status == JobStatus.PENDING)
        self._metrics.update_queue_depth(active=self._active, pending=pending)
