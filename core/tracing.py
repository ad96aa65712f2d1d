"""
OpenTelemetry tracing setup.
"""
from __future__ import annotations

from typing import Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

from core.config import Settings, settings as default_settings
from core.logging_config import get_logger


logger = get_logger(__name__)

_provider: Optional[TracerProvider] = None


def setup_tracing(settings: Optional[Settings] = None) -> Optional[TracerProvider]:
    """Install the global tracer provider once. Returns None when tracing is disabled."""
    global _provider

    settings = settings or default_settings
    otel = settings.otel
    if not otel.enabled:
        return None
    if _provider is not None:
        return _provider

    resource = Resource.create(
        {
            "service.name": otel.service_name,
            "service.version": settings.VERSION,
            "deployment.environment": settings.ENVIRONMENT,
        }
    )
    provider = TracerProvider(
        resource=resource,
        sampler=ParentBased(TraceIdRatioBased(otel.sampler_ratio)),
    )
    if otel.otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otel.otlp_endpoint)))
    if otel.console_exporter:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _provider = provider
    logger.info(
        "tracing_configured",
        service_name=otel.service_name,
        otlp_endpoint=otel.otlp_endpoint,
        sampler_ratio=otel.sampler_ratio,
    )
    return provider


def shutdown_tracing() -> None:
    global _provider
    if _provider is not None:
        _provider.shutdown()
        _provider = None


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)
