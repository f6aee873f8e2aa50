"""
Distributed Tracing with OpenTelemetry.

Traces HTTP requests, database queries and provider dispatch calls.
"""

from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Status, StatusCode

from photoforge.config import settings


def setup_tracing() -> None:
    """Configure the global tracer provider with OTLP export."""
    if not settings.tracing_enabled:
        return

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "service.version": settings.api_version,
        }
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(endpoint=settings.otlp_endpoint, insecure=settings.otlp_insecure)
        )
    )
    trace.set_tracer_provider(provider)


def instrument_fastapi(app: Any) -> None:
    """Instrument FastAPI application. Must be called after app creation."""
    if not settings.tracing_enabled:
        return

    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine: Any) -> None:
    """Instrument an async SQLAlchemy engine."""
    if not settings.tracing_enabled:
        return

    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class trace_operation:
    """
    Context manager for a named span around a unit of work.

    Without a configured tracer provider the span is a no-op.

    Usage:
        with trace_operation("provider.create_prompt", tune_id=tune_id) as span:
            prompt_id = await provider.create_prompt(request)
            span.set_attribute("provider.prompt_id", prompt_id)
    """

    def __init__(self, operation_name: str, **attributes: Any) -> None:
        self.operation_name = operation_name
        self.attributes = attributes
        self._manager: Any = None

    def __enter__(self) -> Span:
        """Start span and make it current."""
        tracer = trace.get_tracer("photoforge.operations")
        self._manager = tracer.start_as_current_span(
            self.operation_name, record_exception=False, set_status_on_exception=False
        )
        span: Span = self._manager.__enter__()
        for key, value in self.attributes.items():
            if value is None:
                continue
            span.set_attribute(key, value if isinstance(value, (str, int, float, bool)) else str(value))
        return span

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Record any error and end the span."""
        if exc_val is not None:
            span = trace.get_current_span()
            span.set_status(Status(StatusCode.ERROR, str(exc_val)))
            span.record_exception(exc_val)
        self._manager.__exit__(exc_type, exc_val, exc_tb)
