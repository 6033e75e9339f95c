"""Streaming ingestion of VAT transaction reports.

Rows are pulled one at a time from the source, normalized, filtered and
fingerprinted, and only the accepted rows are buffered. The buffer is written
once, inside a single database transaction, when the source is exhausted.
"""
from __future__ import annotations

import codecs
import csv
import logging
from collections import Counter
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import uuid4

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from vatreport.core.config import Settings, get_settings
from vatreport.models import USER_ID_MAX_LENGTH, TransactionType, VatTransaction
from vatreport.obs import INGESTION_FAILURE_COUNTER, record_ingestion, traced
from vatreport.services.filters import TransactionFilter
from vatreport.services.fingerprint import generate_fingerprint
from vatreport.services.normalization import AmountPolicy, build_report_row, normalize_record

logger = logging.getLogger(__name__)

_CONFLICT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class IngestionError(RuntimeError):
    """Raised when a report stream or its bulk write fails; nothing is committed."""


@dataclass(slots=True, frozen=True)
class IngestResult:
    accepted: int
    inserted: int
    skipped_by_reason: dict[str, int] = field(default_factory=dict)

    @property
    def skipped(self) -> int:
        return sum(self.skipped_by_reason.values())

    @property
    def duplicates(self) -> int:
        return self.accepted - self.inserted


def iter_text_lines(chunks: Iterable[bytes], *, encoding: str = "utf-8-sig") -> Iterator[str]:
    """Decode a byte-chunk stream into lines, keeping line terminators.

    Multi-byte characters split across chunks are handled by an incremental
    decoder. Terminators are kept so ``csv`` can rebuild quoted fields that
    span lines.
    """
    decoder = codecs.getincrementaldecoder(encoding)()
    pending = ""
    for chunk in chunks:
        pending += decoder.decode(chunk)
        *lines, pending = pending.split("\n")
        for line in lines:
            yield line + "\n"
    pending += decoder.decode(b"", final=True)
    if pending:
        yield pending


def iter_report_rows(lines: Iterable[str]) -> Iterator[dict[str | None, Any]]:
    """Parse CSV lines into raw records keyed by the file's own headers.

    Short rows yield ``None`` for missing cells and surplus cells land under
    the ``None`` key, so ragged extracts never abort the parse.
    """
    yield from csv.DictReader(lines)


class TransactionGateway(Protocol):
    def insert_ignoring_duplicates(self, rows: Sequence[dict[str, Any]]) -> int:
        """Insert ``rows``, skipping fingerprints already stored, and return the inserted count."""


class TransactionRepository:
    """Bulk writes to ``vat_transactions`` relying on the unique fingerprint."""

    def __init__(self, session: Session, *, chunk_size: int = 500) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._session = session
        self._chunk_size = chunk_size

    def _conflict_insert(self) -> Any:
        bind = self._session.get_bind()
        if bind is None:
            raise RuntimeError("Session is not bound to an engine")
        try:
            return _CONFLICT_INSERTS[bind.dialect.name]
        except KeyError:
            raise RuntimeError(
                f"Conflict-ignoring inserts are not supported on '{bind.dialect.name}'"
            ) from None

    def insert_ignoring_duplicates(self, rows: Sequence[dict[str, Any]]) -> int:
        if not rows:
            return 0
        insert = self._conflict_insert()
        table = VatTransaction.__table__
        inserted = 0
        for start in range(0, len(rows), self._chunk_size):
            chunk = rows[start : start + self._chunk_size]
            statement = (
                insert(table)
                .values(list(chunk))
                .on_conflict_do_nothing(index_elements=[table.c.fingerprint])
                .returning(table.c.fingerprint)
            )
            inserted += len(self._session.execute(statement).fetchall())
        return inserted


class ReportIngestService:
    """Runs a report row stream through normalize, filter and fingerprint, then persists it."""

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        row_filter: TransactionFilter | None = None,
        gateway: TransactionGateway | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._filter = row_filter or TransactionFilter.from_settings(self._settings)
        self._amount_policy = AmountPolicy(self._settings.invalid_amount_policy)
        self._gateway = gateway or TransactionRepository(
            session, chunk_size=self._settings.ingest_statement_chunk_size
        )

    def ingest(self, rows: Iterable[Mapping[Any, Any]], user_id: str) -> IngestResult:
        """Ingest ``rows`` for ``user_id``.

        A failure while reading the source or writing the batch rolls back the
        transaction and raises :class:`IngestionError`.
        """
        if not user_id or not user_id.strip():
            raise ValueError("user_id is required")
        if len(user_id) > USER_ID_MAX_LENGTH:
            raise ValueError(f"user_id exceeds {USER_ID_MAX_LENGTH} characters")

        with traced("report.ingest", user_id=user_id) as span:
            try:
                result = self._run(rows, user_id)
            except Exception as exc:
                self._session.rollback()
                INGESTION_FAILURE_COUNTER.inc()
                logger.exception("report ingestion failed", extra={"user_id": user_id})
                raise IngestionError(f"Report ingestion failed: {exc}") from exc
            span.set_attribute("report.rows_accepted", result.accepted)
            span.set_attribute("report.rows_inserted", result.inserted)
            span.set_attribute("report.rows_skipped", result.skipped)

        record_ingestion(
            accepted=result.accepted,
            inserted=result.inserted,
            skipped_by_reason=result.skipped_by_reason,
        )
        logger.info(
            "report ingestion completed",
            extra={
                "user_id": user_id,
                "accepted": result.accepted,
                "inserted": result.inserted,
                "skipped": result.skipped,
            },
        )
        return result

    def ingest_csv(self, chunks: Iterable[bytes], user_id: str) -> IngestResult:
        """Ingest a raw CSV byte stream."""
        return self.ingest(iter_report_rows(iter_text_lines(chunks)), user_id)

    def _run(self, rows: Iterable[Mapping[Any, Any]], user_id: str) -> IngestResult:
        batch: list[dict[str, Any]] = []
        seen: set[str] = set()
        skipped: Counter[str] = Counter()

        for raw in rows:
            record = normalize_record(raw)
            row = build_report_row(record, amount_policy=self._amount_policy)
            decision = self._filter.evaluate(row)
            if not decision.accepted:
                skipped[decision.reason or "rejected"] += 1
                if row.raw_date and not row.transaction_date.ok:
                    logger.warning(
                        "unparsable report date",
                        extra={"event_id": row.event_id, "raw_date": row.raw_date},
                    )
                logger.debug(
                    "skipped report row",
                    extra={"event_id": row.event_id, "reason": decision.reason},
                )
                continue

            fingerprint = generate_fingerprint(record)
            values = row.to_values()
            values["transaction_type"] = TransactionType(row.transaction_type)
            values.update(id=str(uuid4()), fingerprint=fingerprint, user_id=user_id)
            batch.append(values)
            seen.add(fingerprint)

        accepted = len(batch)
        if not batch:
            return IngestResult(accepted=0, inserted=0, skipped_by_reason=dict(skipped))

        unique_rows = _first_per_fingerprint(batch) if len(seen) < accepted else batch
        inserted = self._gateway.insert_ignoring_duplicates(unique_rows)
        self._session.commit()
        return IngestResult(accepted=accepted, inserted=inserted, skipped_by_reason=dict(skipped))


def _first_per_fingerprint(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    unique: dict[str, dict[str, Any]] = {}
    for row in rows:
        unique.setdefault(row["fingerprint"], row)
    return list(unique.values())


__all__ = [
    "IngestResult",
    "IngestionError",
    "ReportIngestService",
    "TransactionGateway",
    "TransactionRepository",
    "iter_report_rows",
    "iter_text_lines",
]
