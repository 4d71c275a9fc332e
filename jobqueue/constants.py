"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """
    Job lifecycle states.

    State transitions:
    - PENDING -> PROCESSING (slot claimed)
    - PROCESSING -> COMPLETED (success)
    - PROCESSING -> PENDING (retry)
    - PROCESSING -> FAILED (retries exhausted)
    - PENDING -> FAILED (no handler registered)
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


FINISHED_STATUSES: frozenset[JobStatus] = frozenset(
    {JobStatus.COMPLETED, JobStatus.FAILED}
)


class FailureReason(StrEnum):
    """Why a job ended in FAILED."""

    RETRIES_EXHAUSTED = "retries_exhausted"
    UNREGISTERED_HANDLER = "unregistered_handler"


# Default values
DEFAULT_MAX_CONCURRENT_JOBS = 3
DEFAULT_POLLING_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_PRIORITY = 0
DEFAULT_FINISHED_JOB_TTL_SECONDS = 60.0

# Storage keys
ACTIVE_KEY_PREFIX = "queue_"
DEAD_LETTER_KEY_PREFIX = "failed_"
ACTIVE_KEY_PATTERN = f"{ACTIVE_KEY_PREFIX}*"
DEAD_LETTER_KEY_PATTERN = f"{DEAD_LETTER_KEY_PREFIX}*"

# Event types
EVENT_JOB_ADDED = "job:added"
EVENT_JOB_STARTED = "job:started"
EVENT_JOB_COMPLETED = "job:completed"
EVENT_JOB_RETRY = "job:retry"
EVENT_JOB_FAILED = "job:failed"
EVENT_QUEUE_STARTED = "queue:started"
EVENT_QUEUE_STOPPED = "queue:stopped"
EVENT_ALL = "*"

EVENT_TYPES: frozenset[str] = frozenset(
    {
        EVENT_JOB_ADDED,
        EVENT_JOB_STARTED,
        EVENT_JOB_COMPLETED,
        EVENT_JOB_RETRY,
        EVENT_JOB_FAILED,
        EVENT_QUEUE_STARTED,
        EVENT_QUEUE_STOPPED,
    }
)

# Metrics names
METRIC_JOBS_SUBMITTED = "jobs_submitted_total"
METRIC_JOBS_FINISHED = "jobs_finished_total"
METRIC_JOB_RETRIES = "job_retries_total"
METRIC_JOB_DURATION = "job_duration_seconds"
METRIC_ACTIVE_JOBS = "queue_active_jobs"
METRIC_PENDING_JOBS = "queue_pending_jobs"
METRIC_PERSISTENCE_ERRORS = "persistence_errors_total"

# Trace span names
SPAN_EXECUTE_JOB = "execute_job"
SPAN_RECOVER_JOBS = "recover_jobs"
