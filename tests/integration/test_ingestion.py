from __future__ import annotations

from collections.abc import Iterator
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from tests.helpers import USER_ID, report_csv, report_row
from vatreport.core.config import Settings
from vatreport.models import TransactionType, VatTransaction
from vatreport.services.ingestion import IngestionError, ReportIngestService, TransactionRepository


def _chunks(text: str, size: int = 7) -> Iterator[bytes]:
    payload = text.encode("utf-8")
    for start in range(0, len(payload), size):
        yield payload[start : start + size]


def _count(session) -> int:
    return session.scalar(select(func.count()).select_from(VatTransaction))


def test_ingest_persists_accepted_rows(db_session) -> None:
    rows = [
        report_row("E-1"),
        report_row("E-2", TRANSACTION_TYPE="REFUND", TOTAL_ACTIVITY_VALUE_VAT_AMT="5,25"),
        report_row("E-3", TAX_REPORTING_SCHEME="REGULAR"),
        report_row("E-4", TRANSACTION_TYPE="FC_TRANSFER"),
        report_row("E-5", TRANSACTION_COMPLETE_DATE="not-a-date"),
    ]
    result = ReportIngestService(db_session).ingest_csv(_chunks(report_csv(rows)), USER_ID)

    assert (result.accepted, result.inserted, result.skipped) == (2, 2, 3)
    assert result.skipped_by_reason == {"tax_scheme": 1, "transaction_type": 1, "invalid_date": 1}

    refund = db_session.scalars(
        select(VatTransaction).where(VatTransaction.transaction_type == TransactionType.REFUND)
    ).one()
    assert refund.user_id == USER_ID
    assert refund.transaction_date == date(2025, 3, 19)
    assert refund.total_value_vat == Decimal("5.25")
    assert refund.taxable_jurisdiction == "ES"
    assert len(refund.fingerprint) == 64


def test_reingesting_same_report_inserts_nothing(db_session) -> None:
    payload = report_csv([report_row("E-1"), report_row("E-2")])
    service = ReportIngestService(db_session)

    first = service.ingest_csv(_chunks(payload), USER_ID)
    second = service.ingest_csv(_chunks(payload), USER_ID)

    assert (first.accepted, first.inserted) == (2, 2)
    assert (second.accepted, second.inserted) == (2, 0)
    assert second.duplicates == 2
    assert _count(db_session) == 2


def test_duplicate_rows_within_one_report_are_stored_once(db_session) -> None:
    payload = report_csv([report_row("E-1"), report_row("E-1", ITEM_DESCRIPTION="changed")])
    result = ReportIngestService(db_session).ingest_csv(_chunks(payload), USER_ID)

    assert (result.accepted, result.inserted) == (2, 1)
    assert _count(db_session) == 1


def test_small_statement_chunks_still_write_everything(db_session) -> None:
    settings = Settings(ingest_statement_chunk_size=2)
    rows = [report_row(f"E-{index}") for index in range(5)]
    result = ReportIngestService(db_session, settings=settings).ingest(rows, USER_ID)

    assert result.inserted == 5
    assert _count(db_session) == 5


def test_empty_report_writes_nothing(db_session) -> None:
    class FailingGateway:
        def insert_ignoring_duplicates(self, rows):  # pragma: no cover - must not be called
            raise AssertionError("gateway should not be used")

    result = ReportIngestService(db_session, gateway=FailingGateway()).ingest(
        [report_row("E-1", TAX_REPORTING_SCHEME="REGULAR")], USER_ID
    )
    assert (result.accepted, result.inserted, result.skipped) == (0, 0, 1)


def test_source_failure_rolls_back_everything(db_session) -> None:
    def broken_source():
        yield report_row("E-1")
        yield report_row("E-2")
        raise OSError("connection reset while reading report")

    with pytest.raises(IngestionError) as excinfo:
        ReportIngestService(db_session).ingest(broken_source(), USER_ID)

    assert isinstance(excinfo.value.__cause__, OSError)
    assert _count(db_session) == 0


def test_gateway_failure_is_reported_as_ingestion_error(db_session) -> None:
    class ExplodingGateway:
        def insert_ignoring_duplicates(self, rows):
            raise RuntimeError("database unavailable")

    with pytest.raises(IngestionError):
        ReportIngestService(db_session, gateway=ExplodingGateway()).ingest([report_row("E-1")], USER_ID)
    assert _count(db_session) == 0


def test_undecodable_stream_is_an_ingestion_error(db_session) -> None:
    payload = report_csv([report_row("E-1")]).encode("utf-8") + b"\xff\xfe,broken\n"
    with pytest.raises(IngestionError):
        ReportIngestService(db_session).ingest_csv([payload], USER_ID)
    assert _count(db_session) == 0


def test_reject_row_policy_drops_garbled_amounts(db_session) -> None:
    settings = Settings(invalid_amount_policy="REJECT_ROW")
    rows = [report_row("E-1"), report_row("E-2", TOTAL_ACTIVITY_VALUE_VAT_AMT="n/a")]
    result = ReportIngestService(db_session, settings=settings).ingest(rows, USER_ID)

    assert (result.accepted, result.inserted) == (1, 1)
    assert result.skipped_by_reason == {"invalid_amount": 1}


def test_headers_are_matched_case_insensitively_with_bom(db_session) -> None:
    payload = (
        "\ufefftransaction_event_id,Transaction_Type,tax_reporting_scheme,"
        "TRANSACTION_COMPLETE_DATE,taxable_jurisdiction,activity_value_vat_amt\n"
        "E-9,sale,union-oss,01/02/2025,FR,\"3,10\"\n"
    )
    result = ReportIngestService(db_session).ingest_csv([payload.encode("utf-8")], USER_ID)
    assert result.inserted == 1

    stored = db_session.scalars(select(VatTransaction)).one()
    assert stored.transaction_date == date(2025, 2, 1)
    assert stored.total_value_vat == Decimal("3.10")
    assert stored.transaction_currency_code == "EUR"


def test_blank_user_id_is_rejected(db_session) -> None:
    with pytest.raises(ValueError):
        ReportIngestService(db_session).ingest([report_row("E-1")], "  ")


def test_repository_rejects_non_positive_chunk_size(db_session) -> None:
    with pytest.raises(ValueError):
        TransactionRepository(db_session, chunk_size=0)


def test_oversized_report_values_do_not_fail_the_batch(db_session) -> None:
    jurisdiction = "Spain (Canary Islands, outside the EU VAT area) " * 3
    rows = [
        report_row(
            "E-1",
            TRANSACTION_CURRENCY_CODE="EURO",
            TAXABLE_JURISDICTION=jurisdiction,
            SALE_ARRIVAL_COUNTRY="Spain",
            QTY="9" * 20,
            TOTAL_ACTIVITY_VALUE_VAT_AMT="1e13",
        ),
        report_row("E-2", QTY=str(2**40)),
    ]
    result = ReportIngestService(db_session).ingest(rows, USER_ID)

    assert (result.accepted, result.inserted) == (2, 2)
    stored = {row.item_quantity: row for row in db_session.scalars(select(VatTransaction))}
    assert set(stored) == {0, 2**40}
    oversized = stored[0]
    assert oversized.transaction_currency_code == "EUR"
    assert oversized.taxable_jurisdiction == jurisdiction.strip()
    assert oversized.total_value_vat == Decimal("0")


def test_ingest_rejects_overlong_user_id(db_session) -> None:
    with pytest.raises(ValueError):
        ReportIngestService(db_session).ingest([report_row("E-1")], "u" * 65)
    assert _count(db_session) == 0
