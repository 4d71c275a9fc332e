"""
Exception hierarchy for the job queue.

Only InvalidJobError reaches callers (synchronously, from submit). The
others are raised and caught inside the dispatcher and surface through
job status and events.
"""


class QueueError(Exception):
    """Base class for job queue errors."""


class InvalidJobError(QueueError, ValueError):
    """Raised when submit() is called with malformed arguments."""


class UnregisteredHandlerError(QueueError):
    """No handler is registered for a job's type."""

    def __init__(self, job_type: str):
        self.job_type = job_type
        super().__init__(f"No handler registered for job type: {job_type}")


class HandlerExecutionError(QueueError):
    """A handler reported a failed outcome without raising."""


class PersistenceError(QueueError):
    """A store operation failed."""

    def __init__(self, operation: str, key: str, message: str):
        self.operation = operation
        self.key = key
        super().__init__(f"{operation} failed for {key}: {message}")


class RecordNotFoundError(PersistenceError):
    """The requested key does not exist in the store."""

    def __init__(self, key: str):
        super().__init__("read", key, "record not found")
