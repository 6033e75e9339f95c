"""Prometheus metrics for the API and the report ingestor worker."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Mapping

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_LATENCY_SECONDS = Histogram(
    "http_request_latency_seconds",
    "Latency of HTTP requests in seconds.",
    labelnames=("method", "path"),
)
REQUEST_COUNTER = Counter(
    "http_requests_total",
    "Total number of HTTP requests processed.",
    labelnames=("method", "path", "status"),
)
REQUEST_ERROR_COUNTER = Counter(
    "http_request_errors_total",
    "Total number of HTTP requests that resulted in server errors.",
    labelnames=("method", "path", "status"),
)
QUEUE_DEPTH_GAUGE = Gauge(
    "worker_queue_depth",
    "Depth of asynchronous worker queues awaiting processing.",
    labelnames=("queue_name",),
)
REPORT_ROWS_ACCEPTED_COUNTER = Counter(
    "report_rows_accepted_total",
    "Report rows that passed normalization and business filtering.",
)
REPORT_ROWS_INSERTED_COUNTER = Counter(
    "report_rows_inserted_total",
    "Report rows newly persisted, excluding duplicates.",
)
REPORT_ROWS_SKIPPED_COUNTER = Counter(
    "report_rows_skipped_total",
    "Report rows dropped during ingestion.",
    labelnames=("reason",),
)
INGESTION_FAILURE_COUNTER = Counter(
    "report_ingestion_failures_total",
    "Report ingestions aborted by a stream or persistence error.",
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware that records request metrics for Prometheus scraping."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        method = request.method
        path = request.url.path
        start_time = time.perf_counter()
        status = "500"

        try:
            response = await call_next(request)
            status = str(response.status_code)
            if response.status_code >= 500:
                REQUEST_ERROR_COUNTER.labels(method=method, path=path, status=status).inc()
            return response
        except Exception:
            REQUEST_ERROR_COUNTER.labels(method=method, path=path, status="500").inc()
            raise
        finally:
            latency = time.perf_counter() - start_time
            REQUEST_LATENCY_SECONDS.labels(method=method, path=path).observe(latency)
            REQUEST_COUNTER.labels(method=method, path=path, status=status).inc()


metrics_router = APIRouter(tags=["observability"])


@metrics_router.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    """Expose Prometheus metrics for scraping."""
    payload = generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


def report_queue_depth(queue_name: str, depth: int | float) -> None:
    """Report the depth of a named worker queue."""
    QUEUE_DEPTH_GAUGE.labels(queue_name=queue_name).set(max(0.0, float(depth)))


def record_ingestion(*, accepted: int, inserted: int, skipped_by_reason: Mapping[str, int]) -> None:
    """Publish the row counts of one completed ingestion."""
    REPORT_ROWS_ACCEPTED_COUNTER.inc(accepted)
    REPORT_ROWS_INSERTED_COUNTER.inc(inserted)
    for reason, count in skipped_by_reason.items():
        REPORT_ROWS_SKIPPED_COUNTER.labels(reason=reason).inc(count)


__all__ = [
    "INGESTION_FAILURE_COUNTER",
    "PrometheusMiddleware",
    "QUEUE_DEPTH_GAUGE",
    "REPORT_ROWS_ACCEPTED_COUNTER",
    "REPORT_ROWS_INSERTED_COUNTER",
    "REPORT_ROWS_SKIPPED_COUNTER",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "metrics_endpoint",
    "metrics_router",
    "record_ingestion",
    "report_queue_depth",
]
