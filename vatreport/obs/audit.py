"""Request audit trail for report uploads and VAT queries."""
from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable
from uuid import uuid4

import boto3
from botocore.exceptions import ClientError  # type: ignore[import-untyped]
from fastapi import Request
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from vatreport.core.config import Settings


@dataclass(slots=True)
class AuditLogRecord:
    """Structured entry emitted once per request.

    Only query parameters are captured; report bodies are streamed straight
    into ingestion and never buffered here.
    """

    timestamp: str
    request_id: str
    method: str
    path: str
    status: int
    duration_ms: float
    user_id: str | None
    ip_address: str | None
    query: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["duration_ms"] = round(self.duration_ms, 2)
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class AuditMiddleware(BaseHTTPMiddleware):
    """Starlette middleware writing audit records to the log and to S3."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        settings: Settings,
        logger: logging.Logger | None = None,
        s3_client_factory: Callable[[], Any] | None = None,
    ) -> None:
        super().__init__(app)
        self._settings = settings
        self._logger = logger or logging.getLogger("audit")
        self._s3_client_factory = s3_client_factory or self._default_client_factory
        self._s3_client: Any | None = None
        self._bucket_ready = False

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()

        response = await call_next(request)

        query = dict(request.query_params.multi_items())
        record = AuditLogRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=(time.perf_counter() - start) * 1000,
            user_id=getattr(request.state, "user_id", None) or query.get("user_id"),
            ip_address=request.client.host if request.client else None,
            query=query,
        )

        self._logger.info(record.to_json())
        await run_in_threadpool(self._persist_to_s3, record)

        response.headers["X-Request-ID"] = request_id
        return response

    def _default_client_factory(self) -> Any:
        return boto3.client(
            "s3",
            region_name=self._settings.aws_region,
            endpoint_url=self._settings.s3_endpoint_url,
        )

    def _get_s3_client(self) -> Any:
        if self._s3_client is None:
            self._s3_client = self._s3_client_factory()
        return self._s3_client

    def _ensure_bucket(self, client: Any) -> None:
        if self._bucket_ready:
            return
        bucket = self._settings.audit_log_bucket
        try:
            client.head_bucket(Bucket=bucket)
        except ClientError:
            client.create_bucket(Bucket=bucket)
        self._bucket_ready = True

    def _should_persist(self) -> bool:
        rate = self._settings.audit_log_sample_rate
        if rate <= 0:
            return False
        return rate >= 1 or random.random() <= rate

    def _persist_to_s3(self, record: AuditLogRecord) -> None:
        if not self._should_persist():
            return
        try:
            client = self._get_s3_client()
            self._ensure_bucket(client)
            client.put_object(
                Bucket=self._settings.audit_log_bucket,
                Key=self._record_key(record),
                Body=record.to_json().encode("utf-8"),
                ContentType="application/json",
            )
        except Exception as exc:  # pragma: no cover - S3 connectivity issues
            self._logger.error("failed to persist audit record", extra={"error": str(exc)})

    def _record_key(self, record: AuditLogRecord) -> str:
        """One object per request, grouped by UTC day."""
        now = datetime.now(timezone.utc)
        prefix = self._settings.audit_log_prefix.rstrip("/")
        return f"{prefix}/{now:%Y/%m/%d}/{now:%H%M%S%f}-{record.request_id}.json"


__all__ = ["AuditLogRecord", "AuditMiddleware"]
