"""
Job handler registry.

Maps a job type to the callable that runs jobs of that type. Handlers
should be idempotent: after a crash a job may run again.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from jobqueue.types.job import Job

logger = logging.getLogger(__name__)

# A handler receives the job record. Coroutine functions are awaited.
# Raising, or returning JobResult(success=False), fails the attempt.
JobHandler = Callable[[Job], Awaitable[Any] | Any]


class HandlerRegistry:
    """One handler per job type; the last registration wins."""

    def __init__(self):
        self._handlers: dict[str, JobHandler] = {}

    def register(self, job_type: str, handler: JobHandler) -> None:
        """
        Register a handler, replacing any existing one for the type.

        Args:
            job_type: The job type this handler processes.
            handler: The handler callable.
        """
        if job_type in self._handlers:
            logger.debug(f"Replacing handler for job type: {job_type}")
        self._handlers[job_type] = handler
        logger.debug(f"Registered handler for job type: {job_type}")

    def handler(self, job_type: str) -> Callable[[JobHandler], JobHandler]:
        """
        Decorator to register a job handler.

        Example:
            @registry.handler("send_email")
            async def handle_send_email(job: Job) -> None:
                ...
        """
        def decorator(handler: JobHandler) -> JobHandler:
            self.register(job_type, handler)
            return handler
        return decorator

    def get(self, job_type: str) -> JobHandler | None:
        """
        Get the handler for a job type.

        Returns:
            The handler function or None if not found.
        """
        return self._handlers.get(job_type)

    def unregister(self, job_type: str) -> bool:
        """Remove a handler. Returns False if none was registered."""
        return self._handlers.pop(job_type, None) is not None

    def list_types(self) -> list[str]:
        """List all registered job types."""
        return list(self._handlers.keys())

    def __contains__(self, job_type: object) -> bool:
        return job_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
