"""Span helpers shared by the API and the report ingestor.

Uploads carry the W3C ``traceparent`` of the request that queued them, so
the ingestor's span joins the same trace as the upload.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.trace import Span
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

_TRACER_NAME = "vatreport"
_PROPAGATOR = TraceContextTextMapPropagator()


def initialise_tracing(
    *,
    service_name: str,
    endpoint: str | None = None,
    instrument_logging: bool = True,
) -> TracerProvider:
    """Install the process tracer provider once; later calls return it unchanged.

    Spans go to the OTLP collector at ``endpoint``, or to the console when no
    collector is configured.
    """

    current = trace.get_tracer_provider()
    if isinstance(current, TracerProvider):
        return current

    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: service_name}))
    if endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True)))
    else:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    if instrument_logging:
        LoggingInstrumentor().instrument(set_logging_format=True)
    return provider


def instrument_fastapi_app(app: FastAPI) -> None:
    FastAPIInstrumentor().instrument_app(app)


def instrument_sqlalchemy_engine(engine: Any) -> None:
    SQLAlchemyInstrumentor().instrument(engine=engine)


@contextmanager
def traced(name: str, traceparent: str | None = None, **attributes: Any) -> Iterator[Span]:
    """Start a span, continuing the trace of ``traceparent`` when one is given.

    ``None`` attribute values are skipped; OpenTelemetry rejects them.
    """

    context = _PROPAGATOR.extract(carrier={"traceparent": traceparent}) if traceparent else None
    with trace.get_tracer(_TRACER_NAME).start_as_current_span(name, context=context) as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, value)
        yield span


def current_traceparent() -> str | None:
    """``traceparent`` of the active span, or ``None`` outside a recorded trace."""

    carrier: dict[str, str] = {}
    _PROPAGATOR.inject(carrier)
    return carrier.get("traceparent")


__all__ = [
    "current_traceparent",
    "initialise_tracing",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "traced",
]
