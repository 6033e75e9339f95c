"""Async worker ingesting queued VAT report uploads."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import boto3

from vatreport.core.config import Settings, get_settings
from vatreport.core.logging import configure_logging
from vatreport.db.session import SessionLocal
from vatreport.obs import initialise_tracing, report_queue_depth, traced
from vatreport.services.ingestion import IngestionError
from vatreport.services.uploads import ReportUploadMessage, process_report_message

logger = logging.getLogger(__name__)
QUEUE_NAME = "report-ingestion"


class ReportIngestorWorker:
    """Background worker streaming uploaded reports from S3 into the database."""

    def __init__(self, *, settings: Settings | None = None, session_factory: Any = None) -> None:
        self._settings = settings or get_settings()
        self._session_factory = session_factory or SessionLocal
        self._s3_client = boto3.client(
            "s3",
            region_name=self._settings.aws_region,
            endpoint_url=self._settings.s3_endpoint_url,
        )
        self._sqs_client = boto3.client(
            "sqs",
            region_name=self._settings.aws_region,
            endpoint_url=self._settings.sqs_endpoint_url,
        )

    async def run_forever(self) -> None:
        logger.info("report ingestor worker started")
        while True:
            processed = await self.poll_once()
            if not processed:
                await asyncio.sleep(self._settings.report_ingestor_poll_interval_seconds)

    async def poll_once(self) -> bool:
        response = await asyncio.to_thread(
            self._sqs_client.receive_message,
            QueueUrl=self._settings.upload_queue_url,
            MaxNumberOfMessages=5,
            WaitTimeSeconds=1,
        )
        messages = response.get("Messages", [])
        report_queue_depth(QUEUE_NAME, len(messages))
        if not messages:
            return False

        remaining = len(messages)
        for message in messages:
            body = message.get("Body", "")
            receipt = message.get("ReceiptHandle")
            remaining -= 1
            try:
                await self._handle(body)
            finally:
                if receipt:
                    await asyncio.to_thread(
                        self._sqs_client.delete_message,
                        QueueUrl=self._settings.upload_queue_url,
                        ReceiptHandle=receipt,
                    )
            report_queue_depth(QUEUE_NAME, remaining)
        return True

    async def _handle(self, body: str) -> None:
        try:
            payload = ReportUploadMessage.from_json(body)
        except (KeyError, TypeError, ValueError) as exc:
            logger.exception("invalid report upload message", extra={"body": body})
            await self._dead_letter({"body": body, "error": str(exc)})
            return

        try:
            with traced(
                "report_ingestor.process",
                payload.traceparent,
                upload_id=payload.upload_id,
                user_id=payload.user_id,
            ):
                await asyncio.to_thread(
                    process_report_message,
                    message=payload,
                    session_factory=self._session_factory,
                    s3_client=self._s3_client,
                    settings=self._settings,
                )
        except IngestionError as exc:
            await self._dead_letter({"upload_id": payload.upload_id, "error": str(exc)})
        except Exception as exc:  # pragma: no cover - worker logs unexpected failures
            logger.exception(
                "failed to process report upload",
                extra={"upload_id": payload.upload_id, "error": str(exc)},
            )
            await self._dead_letter({"upload_id": payload.upload_id, "error": str(exc)})

    async def _dead_letter(self, payload: dict[str, Any]) -> None:
        await asyncio.to_thread(
            self._sqs_client.send_message,
            QueueUrl=self._settings.upload_dead_letter_queue_url,
            MessageBody=json.dumps(payload),
        )


async def run() -> None:
    configure_logging()
    settings = get_settings()
    if settings.enable_tracing:
        initialise_tracing(
            service_name="report-ingestor-worker",
            endpoint=settings.otel_exporter_endpoint,
            instrument_logging=False,
        )
    report_queue_depth(QUEUE_NAME, 0)
    worker = ReportIngestorWorker(settings=settings)
    await worker.run_forever()


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:  # pragma: no cover - CLI signal handling
        logger.info("report ingestor worker stopped")


if __name__ == "__main__":
    main()
