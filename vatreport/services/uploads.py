"""Queued report uploads: S3 storage, SQS fan-out and worker-side ingestion."""
from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import boto3
from sqlalchemy.orm import Session

from vatreport.core.config import Settings, get_settings
from vatreport.obs import current_traceparent
from vatreport.services.ingestion import IngestResult, ReportIngestService

logger = logging.getLogger(__name__)

_CSV_CONTENT_TYPE = "text/csv"


class UploadError(RuntimeError):
    """Raised when an upload cannot be stored or enqueued."""


@dataclass(slots=True, frozen=True)
class ReportUploadMessage:
    """Payload enqueued to the report ingestor worker."""

    upload_id: str
    bucket: str
    key: str
    user_id: str
    original_filename: str | None
    enqueued_at: str
    traceparent: str | None = None

    def to_json(self) -> str:
        return json.dumps(
            {
                "upload_id": self.upload_id,
                "bucket": self.bucket,
                "key": self.key,
                "user_id": self.user_id,
                "original_filename": self.original_filename,
                "enqueued_at": self.enqueued_at,
                "traceparent": self.traceparent,
            }
        )

    @classmethod
    def from_json(cls, data: str) -> "ReportUploadMessage":
        payload = json.loads(data)
        return cls(
            upload_id=str(payload["upload_id"]),
            bucket=str(payload["bucket"]),
            key=str(payload["key"]),
            user_id=str(payload["user_id"]),
            original_filename=payload.get("original_filename"),
            enqueued_at=str(payload.get("enqueued_at") or datetime.now(timezone.utc).isoformat()),
            traceparent=payload.get("traceparent"),
        )


@dataclass(slots=True, frozen=True)
class ReportUploadResult:
    upload_id: str
    location: str


class ReportUploadService:
    """Stores uploaded report files and notifies the ingestor queue."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        s3_client_factory: Callable[[], Any] | None = None,
        sqs_client_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._s3_client_factory = s3_client_factory or self._default_s3_client
        self._sqs_client_factory = sqs_client_factory or self._default_sqs_client
        self._s3_client: Any | None = None
        self._sqs_client: Any | None = None
        self._bucket_ready = False

    def _default_s3_client(self) -> Any:
        return boto3.client(
            "s3",
            region_name=self._settings.aws_region,
            endpoint_url=self._settings.s3_endpoint_url,
        )

    def _default_sqs_client(self) -> Any:
        return boto3.client(
            "sqs",
            region_name=self._settings.aws_region,
            endpoint_url=self._settings.sqs_endpoint_url,
        )

    def _get_s3_client(self) -> Any:
        if self._s3_client is None:
            self._s3_client = self._s3_client_factory()
        return self._s3_client

    def _get_sqs_client(self) -> Any:
        if self._sqs_client is None:
            self._sqs_client = self._sqs_client_factory()
        return self._sqs_client

    def _ensure_bucket(self) -> None:
        if self._bucket_ready:
            return
        client = self._get_s3_client()
        bucket = self._settings.upload_bucket
        try:
            client.head_bucket(Bucket=bucket)
        except Exception:  # pragma: no cover - client raises ClientError subclasses
            client.create_bucket(Bucket=bucket)
        self._bucket_ready = True

    def object_key(self, user_id: str, upload_id: str) -> str:
        return (
            f"{self._settings.upload_prefix}/{user_id}/"
            f"{datetime.now(timezone.utc):%Y/%m/%d}/{upload_id}.csv"
        )

    def handle_upload(self, *, user_id: str, body: Any, filename: str | None = None) -> ReportUploadResult:
        """Store ``body`` (bytes or a binary file object) and enqueue it for ingestion."""
        if not user_id or not user_id.strip():
            raise ValueError("user_id is required")

        upload_id = uuid4().hex
        key = self.object_key(user_id, upload_id)
        bucket = self._settings.upload_bucket
        try:
            self._ensure_bucket()
            self._get_s3_client().put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentType=_CSV_CONTENT_TYPE,
                Metadata={"user_id": user_id, "upload_id": upload_id, "filename": filename or ""},
            )
            message = ReportUploadMessage(
                upload_id=upload_id,
                bucket=bucket,
                key=key,
                user_id=user_id,
                original_filename=filename,
                enqueued_at=datetime.now(timezone.utc).isoformat(),
                traceparent=current_traceparent(),
            )
            self._get_sqs_client().send_message(
                QueueUrl=self._settings.upload_queue_url,
                MessageBody=message.to_json(),
            )
        except Exception as exc:
            logger.exception("failed to queue report upload", extra={"upload_id": upload_id})
            raise UploadError(f"Could not queue report upload: {exc}") from exc

        location = f"s3://{bucket}/{key}"
        logger.info(
            "queued report upload",
            extra={"upload_id": upload_id, "location": location, "user_id": user_id},
        )
        return ReportUploadResult(upload_id=upload_id, location=location)


def iter_object_chunks(body: Any, chunk_size: int) -> Iterator[bytes]:
    """Iterate an S3 ``StreamingBody`` (or any ``read``-able object) in chunks."""
    iter_chunks = getattr(body, "iter_chunks", None)
    if iter_chunks is not None:
        yield from iter_chunks(chunk_size=chunk_size)
        return
    while True:
        chunk = body.read(chunk_size)
        if not chunk:
            break
        yield chunk


def process_report_message(
    *,
    message: ReportUploadMessage,
    session_factory: Callable[[], Session],
    s3_client: Any,
    settings: Settings | None = None,
    service_factory: Callable[[Session], ReportIngestService] | None = None,
) -> IngestResult:
    """Stream a queued report from S3 into the ingestion pipeline."""
    settings = settings or get_settings()
    response = s3_client.get_object(Bucket=message.bucket, Key=message.key)
    chunks: Iterable[bytes] = iter_object_chunks(response["Body"], settings.upload_chunk_size)

    session = session_factory()
    try:
        service = (
            service_factory(session)
            if service_factory is not None
            else ReportIngestService(session, settings=settings)
        )
        result = service.ingest_csv(chunks, message.user_id)
    finally:
        session.close()

    logger.info(
        "processed report upload",
        extra={
            "upload_id": message.upload_id,
            "accepted": result.accepted,
            "inserted": result.inserted,
            "skipped": result.skipped,
        },
    )
    return result


__all__ = [
    "ReportUploadMessage",
    "ReportUploadResult",
    "ReportUploadService",
    "UploadError",
    "iter_object_chunks",
    "process_report_message",
]
