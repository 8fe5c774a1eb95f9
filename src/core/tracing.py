"""
OpenTelemetry tracing for SlideCraft.

Model calls are wrapped in spans so quota and overload failures show up in
Application Insights next to the request that caused them. Without a
configured exporter the spans are no-ops.
"""

import logging
import os
from contextlib import contextmanager
from typing import Iterator

from opentelemetry import trace as otel_trace
from opentelemetry.trace import Span, Status, StatusCode

logger = logging.getLogger(__name__)
_tracing_initialized = False

TRACER_NAME = "slidecraft"


def setup_tracing() -> bool:
    """Configure Azure Monitor export; returns True when tracing is active."""
    global _tracing_initialized
    if _tracing_initialized:
        return True

    from src.core.config import get_settings
    settings = get_settings()

    if not settings.tracing_enabled:
        logger.info("🔇 Tracing is \033[91mdisabled\033[0m (set TRACING_ENABLED=true to enable)")
        return False

    if not settings.applicationinsights_connection_string:
        logger.info("🔇 No Application Insights connection string configured")
        return False

    from azure.core.settings import settings as azure_settings
    azure_settings.tracing_implementation = "opentelemetry"
    os.environ.setdefault("OTEL_SERVICE_NAME", settings.tracing_service_name)

    from azure.monitor.opentelemetry import configure_azure_monitor
    from opentelemetry.sdk.resources import Resource

    configure_azure_monitor(
        connection_string=settings.applicationinsights_connection_string,
        resource=Resource.create({"service.name": settings.tracing_service_name}),
    )
    logger.info("📊 Using \033[96mAzure Application Insights\033[0m for tracing")

    _tracing_initialized = True
    logger.info(f"📊 OpenTelemetry tracing enabled for service: {settings.tracing_service_name}")
    return True


def is_tracing_enabled() -> bool:
    return _tracing_initialized


@contextmanager
def traced(name: str, **attributes) -> Iterator[Span]:
    """
    Run the block inside a span named ``name``.

    Attribute values of None are skipped. An exception escaping the block
    marks the span as failed and is re-raised.
    """
    tracer = otel_trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span(name, record_exception=False) as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(f"slidecraft.{key}", value)
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise
