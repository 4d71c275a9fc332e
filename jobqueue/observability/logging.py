"""
Structured logging for the job queue.

Queue modules log through the standard library (``logging.getLogger`` with
``extra=`` fields). ``setup_logging`` routes those records through structlog
so every line comes out as one structured event, tagged with the trace ids
of the active span and, inside a handler run, with the job being executed.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TextIO

import structlog
from opentelemetry import trace

from jobqueue.config import Settings, get_settings

# Libraries that are chatty at INFO when the queue runs against a database
_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncpg", "httpx", "httpcore")


def add_trace_context(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Add the current span's trace_id and span_id, if one is recording."""
    span = trace.get_current_span()
    if span and span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def setup_logging(settings: Settings | None = None, stream: TextIO | None = None) -> None:
    """
    Configure structured logging for the worker process.

    Args:
        settings: Source of log_level and log_format ("json" or "console").
        stream: Where log lines go. Defaults to stdout.
    """
    settings = settings or get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_trace_context,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]

    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream is None and sys.stdout.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind key-value pairs to every subsequent log line in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


@contextmanager
def job_log_context(job_id: str, job_type: str, attempt: int) -> Iterator[None]:
    """
    Tag every log line emitted inside the block with the running job.

    Each job runs in its own task with its own copy of the context, so
    concurrent jobs never see each other's fields. Handlers that log through
    the standard library get the tags too.
    """
    with structlog.contextvars.bound_contextvars(
        job_id=job_id,
        job_type=job_type,
        attempt=attempt,
    ):
        yield
