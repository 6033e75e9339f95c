"""Observability utilities."""

from .audit import AuditLogRecord, AuditMiddleware
from .metrics import (
    INGESTION_FAILURE_COUNTER,
    QUEUE_DEPTH_GAUGE,
    REPORT_ROWS_ACCEPTED_COUNTER,
    REPORT_ROWS_INSERTED_COUNTER,
    REPORT_ROWS_SKIPPED_COUNTER,
    REQUEST_COUNTER,
    REQUEST_ERROR_COUNTER,
    REQUEST_LATENCY_SECONDS,
    PrometheusMiddleware,
    metrics_router,
    record_ingestion,
    report_queue_depth,
)
from .tracing import (
    current_traceparent,
    initialise_tracing,
    instrument_fastapi_app,
    instrument_sqlalchemy_engine,
    traced,
)

__all__ = [
    "AuditLogRecord",
    "AuditMiddleware",
    "INGESTION_FAILURE_COUNTER",
    "PrometheusMiddleware",
    "QUEUE_DEPTH_GAUGE",
    "REPORT_ROWS_ACCEPTED_COUNTER",
    "REPORT_ROWS_INSERTED_COUNTER",
    "REPORT_ROWS_SKIPPED_COUNTER",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "current_traceparent",
    "initialise_tracing",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "metrics_router",
    "record_ingestion",
    "report_queue_depth",
    "traced",
]
