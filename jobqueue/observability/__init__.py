"""
Logging, metrics, and tracing for the job queue.

The dispatcher records into a MetricsCollector and opens spans through
get_tracer(); the worker process calls the setup_* functions once at start.
"""

from jobqueue.observability.logging import (
    bind_context,
    get_logger,
    job_log_context,
    setup_logging,
)
from jobqueue.observability.metrics import MetricsCollector, get_metrics, setup_metrics
from jobqueue.observability.tracing import get_tracer, set_span_attributes, setup_tracing

__all__ = [
    "MetricsCollector",
    "bind_context",
    "get_logger",
    "get_metrics",
    "get_tracer",
    "job_log_context",
    "set_span_attributes",
    "setup_logging",
    "setup_metrics",
    "setup_tracing",
]
