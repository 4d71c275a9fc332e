"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from jobqueue.constants import (
    METRIC_ACTIVE_JOBS,
    METRIC_JOB_DURATION,
    METRIC_JOB_RETRIES,
    METRIC_JOBS_FINISHED,
    METRIC_JOBS_SUBMITTED,
    METRIC_PENDING_JOBS,
    METRIC_PERSISTENCE_ERRORS,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the job queue.

    Collects metrics for:
    - Job submissions, retries, and terminal outcomes
    - Job execution duration
    - Active and pending job counts
    - Persistence failures
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.jobs_submitted = Counter(
            METRIC_JOBS_SUBMITTED,
            "Total number of jobs submitted",
            ["job_type"],
            registry=self._registry,
        )

        self.jobs_finished = Counter(
            METRIC_JOBS_FINISHED,
            "Total number of jobs that reached a terminal status",
            ["job_type", "status"],
            registry=self._registry,
        )

        self.job_retries = Counter(
            METRIC_JOB_RETRIES,
            "Total number of failed attempts sent back for retry",
            ["job_type"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Handler execution duration in seconds",
            ["job_type", "outcome"],
            buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )

        self.active_jobs = Gauge(
            METRIC_ACTIVE_JOBS,
            "Number of jobs currently processing",
            registry=self._registry,
        )

        self.pending_jobs = Gauge(
            METRIC_PENDING_JOBS,
            "Number of jobs waiting for a slot",
            registry=self._registry,
        )

        self.persistence_errors = Counter(
            METRIC_PERSISTENCE_ERRORS,
            "Total number of failed store operations",
            ["operation"],
            registry=self._registry,
        )

    def record_job_submitted(self, job_type: str) -> None:
        """Record a job submission."""
        self.jobs_submitted.labels(job_type=job_type).inc()

    def record_job_finished(self, job_type: str, status: str) -> None:
        """Record a job reaching a terminal status."""
        self.jobs_finished.labels(job_type=job_type, status=status).inc()

    def record_job_retry(self, job_type: str) -> None:
        """Record a failed attempt that will be retried."""
        self.job_retries.labels(job_type=job_type).inc()

    def record_job_duration(
        self,
        job_type: str,
        outcome: str,
        duration_seconds: float,
    ) -> None:
        """Record how long one handler run took; outcome is "success" or "failure"."""
        self.job_duration.labels(job_type=job_type, outcome=outcome).observe(
            duration_seconds
        )

    def update_queue_depth(self, active: int, pending: int) -> None:
        """Update active and pending gauges."""
        self.active_jobs.set(active)
        self.pending_jobs.set(pending)

    def record_persistence_error(self, operation: str) -> None:
        """Record a failed store operation."""
        self.persistence_errors.labels(operation=operation).inc()

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
