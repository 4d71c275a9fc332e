"""
Event type definitions for queue notifications.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from jobqueue.constants import (
    EVENT_JOB_ADDED,
    EVENT_JOB_COMPLETED,
    EVENT_JOB_FAILED,
    EVENT_JOB_RETRY,
    EVENT_JOB_STARTED,
    EVENT_QUEUE_STARTED,
    EVENT_QUEUE_STOPPED,
    FailureReason,
)
from jobqueue.types.job import Job, utcnow


class QueueEvent(BaseModel):
    """
    Event published when a job or the queue changes state.

    The job is a snapshot taken at publish time, so subscribers see the
    state that triggered the event even if the job moves on.
    """

    event_type: str
    job: Job | None = None
    reason: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)

    @classmethod
    def _for_job(cls, event_type: str, job: Job, reason: str | None = None) -> "QueueEvent":
        return cls(event_type=event_type, job=job.model_copy(), reason=reason)

    @classmethod
    def job_added(cls, job: Job) -> "QueueEvent":
        """Create a job added event."""
        return cls._for_job(EVENT_JOB_ADDED, job)

    @classmethod
    def job_started(cls, job: Job) -> "QueueEvent":
        """Create a job started event."""
        return cls._for_job(EVENT_JOB_STARTED, job)

    @classmethod
    def job_completed(cls, job: Job) -> "QueueEvent":
        """Create a job completed event."""
        return cls._for_job(EVENT_JOB_COMPLETED, job)

    @classmethod
    def job_retry(cls, job: Job) -> "QueueEvent":
        """Create a job retry event."""
        return cls._for_job(EVENT_JOB_RETRY, job, reason=job.error)

    @classmethod
    def job_failed(cls, job: Job, reason: FailureReason) -> "QueueEvent":
        """Create a job failed event."""
        return cls._for_job(EVENT_JOB_FAILED, job, reason=reason.value)

    @classmethod
    def queue_started(cls) -> "QueueEvent":
        """Create a queue started event."""
        return cls(event_type=EVENT_QUEUE_STARTED)

    @classmethod
    def queue_stopped(cls) -> "QueueEvent":
        """Create a queue stopped event."""
        return cls(event_type=EVENT_QUEUE_STOPPED)
