"""
Job-related type definitions.
"""

import time
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from jobqueue.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_PRIORITY,
    FINISHED_STATUSES,
    JobStatus,
)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def generate_job_id(job_type: str) -> str:
    """
    Build a job id from the type, the submission time, and a random suffix.

    Not cryptographically unique; a collision needs the same type, the same
    millisecond, and the same 36-bit suffix.
    """
    return f"{job_type}_{int(time.time() * 1000)}_{uuid4().hex[:9]}"


class Job(BaseModel):
    """
    A unit of work in the queue.

    Created pending by the queue on submission and mutated only by the
    dispatcher afterwards. The payload is opaque to the queue.
    """

    id: str
    type: str
    payload: Any = None
    status: JobStatus = JobStatus.PENDING
    priority: int = DEFAULT_PRIORITY
    retries: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    processed_at: datetime | None = None
    error: str | None = None

    @classmethod
    def create(
        cls,
        job_type: str,
        payload: Any,
        priority: int = DEFAULT_PRIORITY,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> "Job":
        """Create a new pending job with a fresh id."""
        now = utcnow()
        return cls(
            id=generate_job_id(job_type),
            type=job_type,
            payload=payload,
            priority=priority,
            max_retries=max_retries,
            created_at=now,
            updated_at=now,
        )

    @property
    def attempt(self) -> int:
        """The 1-based attempt number of the current or next run."""
        return self.retries + 1

    @property
    def is_last_attempt(self) -> bool:
        """Check if a failure of the current run would be terminal."""
        return self.retries >= self.max_retries

    @property
    def remaining_attempts(self) -> int:
        """Get remaining retry attempts."""
        return max(0, self.max_retries - self.retries)

    @property
    def is_finished(self) -> bool:
        """Check if the job reached a terminal status."""
        return self.status in FINISHED_STATUSES

    def to_record(self) -> dict[str, Any]:
        """Serialize to a JSON-safe dict for a store."""
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Job":
        """Rebuild a job from a stored record."""
        return cls.model_validate(record)


class JobResult(BaseModel):
    """
    Optional outcome returned by a handler.

    Returning JobResult(success=False) fails the attempt the same way
    raising does. Any other return value counts as success.
    """

    success: bool
    output: dict[str, Any] | None = None
    error: str | None = None
    duration_ms: float | None = None


class QueueStats(BaseModel):
    """Snapshot of queue counts. The four status counts sum to total."""

    total: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    active_jobs: int = 0
