"""
OpenTelemetry tracing setup.
"""

import logging
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Tracer

from jobqueue import __version__
from jobqueue.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Global tracer instance
_tracer: Tracer | None = None


def setup_tracing(
    settings: Settings | None = None,
    enable_console_export: bool = False,
) -> Tracer:
    """
    Set up OpenTelemetry tracing.

    Installs an SDK tracer provider with an OTLP exporter when tracing is
    enabled in settings. Otherwise the API's default no-op provider stays
    in place and spans cost nothing.

    Args:
        settings: Application settings. Defaults to the cached settings.
        enable_console_export: If True, also export spans to console.

    Returns:
        Tracer: The tracer instance.
    """
    global _tracer

    settings = settings or get_settings()

    if settings.otel_enabled or enable_console_export:
        resource = Resource.create(
            {
                "service.name": settings.otel_service_name,
                "service.version": __version__,
            }
        )
        provider = TracerProvider(resource=resource)

        if settings.otel_enabled:
            otlp_exporter = OTLPSpanExporter(
                endpoint=settings.otel_exporter_otlp_endpoint,
                insecure=True,
            )
            provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

        if enable_console_export:
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

        trace.set_tracer_provider(provider)
        logger.info(
            "Tracing enabled",
            extra={"endpoint": settings.otel_exporter_otlp_endpoint},
        )

    _tracer = trace.get_tracer(settings.otel_service_name)
    return _tracer


def get_tracer() -> Tracer:
    """
    Get the tracer instance.

    Returns:
        Tracer: The tracer instance. Falls back to a tracer from the global
        provider when setup_tracing() has not run.
    """
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(get_settings().otel_service_name)
    return _tracer


def set_span_attributes(span: Any, attributes: dict[str, Any]) -> None:
    """
    Set string attributes on a span, skipping None values.

    Args:
        span: The span to annotate.
        attributes: Span attributes.
    """
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, str(value))
