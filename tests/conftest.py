from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from io import BytesIO
from pathlib import Path
from types import SimpleNamespace
from typing import BinaryIO
from uuid import uuid4

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("ENABLE_TRACING", "false")

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from vatreport.api.deps import get_db_session
from vatreport.main import app
from vatreport.models import Base


class InMemoryS3Client:
    """In-memory S3 holding audit records and uploaded reports."""

    def __init__(self) -> None:
        self.buckets: dict[str, dict[str, bytes]] = {}

    def head_bucket(self, *, Bucket: str) -> None:
        if Bucket not in self.buckets:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadBucket")

    def create_bucket(self, *, Bucket: str, **_: object) -> None:
        self.buckets.setdefault(Bucket, {})

    def get_object(self, *, Bucket: str, Key: str) -> dict[str, BytesIO]:
        try:
            return {"Body": BytesIO(self.buckets[Bucket][Key])}
        except KeyError:
            raise ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject") from None

    def put_object(self, *, Bucket: str, Key: str, Body: bytes | str | BinaryIO, **_: object) -> dict[str, str]:
        if hasattr(Body, "read"):
            Body = Body.read()
        self.buckets.setdefault(Bucket, {})[Key] = Body.encode("utf-8") if isinstance(Body, str) else Body
        return {"ETag": "in-memory"}


class InMemorySQSClient:
    """In-memory SQS; received messages stay queued until deleted."""

    def __init__(self) -> None:
        self._queues: dict[str, list[dict[str, str]]] = {}

    def send_message(self, *, QueueUrl: str, MessageBody: str, **_: object) -> dict[str, str]:
        message_id = uuid4().hex
        self._queues.setdefault(QueueUrl, []).append(
            {"MessageId": message_id, "ReceiptHandle": message_id, "Body": MessageBody}
        )
        return {"MessageId": message_id}

    def receive_message(self, *, QueueUrl: str, MaxNumberOfMessages: int = 1, **_: object) -> dict:
        messages = [dict(entry) for entry in self._queues.get(QueueUrl, [])[:MaxNumberOfMessages]]
        return {"Messages": messages} if messages else {}

    def delete_message(self, *, QueueUrl: str, ReceiptHandle: str, **_: object) -> None:
        queue = self._queues.get(QueueUrl, [])
        queue[:] = [entry for entry in queue if entry["ReceiptHandle"] != ReceiptHandle]

    def queue(self, queue_url: str) -> list[dict[str, str]]:
        return [dict(entry) for entry in self._queues.get(queue_url, [])]


engine = create_engine(
    "sqlite+pysqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(autouse=True)
def aws(monkeypatch: pytest.MonkeyPatch) -> SimpleNamespace:
    """Route every boto3 client the service builds to fresh in-memory stubs."""
    stubs = SimpleNamespace(s3=InMemoryS3Client(), sqs=InMemorySQSClient())

    def _client_factory(service_name: str, *args: object, **kwargs: object) -> object:
        return getattr(stubs, service_name)

    fake_boto3 = SimpleNamespace(client=_client_factory)
    for module in ("vatreport.obs.audit", "vatreport.services.uploads", "workers.report_ingestor.main"):
        monkeypatch.setattr(f"{module}.boto3", fake_boto3)
    # The audit middleware caches its S3 client; rebuild the stack per test.
    app.middleware_stack = None
    return stubs


@pytest.fixture()
def s3_client(aws: SimpleNamespace) -> InMemoryS3Client:
    return aws.s3


@pytest.fixture()
def sqs_client(aws: SimpleNamespace) -> InMemorySQSClient:
    return aws.sqs


@pytest.fixture()
def db_session() -> Iterator[Session]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture()
def session_factory(db_session: Session) -> sessionmaker:
    return TestingSessionLocal


@pytest.fixture()
def client(db_session: Session) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        try:
            yield db_session
        finally:
            db_session.rollback()

    app.dependency_overrides[get_db_session] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(get_db_session, None)
