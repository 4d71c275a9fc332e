"""
Type definitions for the job queue.
"""

from jobqueue.types.events import QueueEvent
from jobqueue.types.job import (
    Job,
    JobResult,
    QueueStats,
    generate_job_id,
)

__all__ = [
    # Job types
    "Job",
    "JobResult",
    "QueueStats",
    "generate_job_id",
    # Event types
    "QueueEvent",
]
