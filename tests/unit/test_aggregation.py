from __future__ import annotations

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from vatreport.models import TransactionType
from vatreport.services.aggregation import (
    SUMMARY_FIELDS,
    UNKNOWN_JURISDICTION,
    aggregate,
    detail_rows,
    round_cents,
)


def _transaction(
    transaction_type: TransactionType = TransactionType.SALE,
    jurisdiction: str | None = "ES",
    currency: str | None = "EUR",
    transaction_date: date = date(2025, 3, 19),
    **amounts: str,
) -> SimpleNamespace:
    values = {name: Decimal("0") for name in SUMMARY_FIELDS}
    values.update({name: Decimal(value) for name, value in amounts.items()})
    return SimpleNamespace(
        id=f"tx-{transaction_date.isoformat()}-{transaction_type.value}",
        transaction_type=transaction_type,
        transaction_date=transaction_date,
        taxable_jurisdiction=jurisdiction,
        transaction_currency_code=currency,
        item_description="Mug",
        item_quantity=1,
        total_value_vat_excl=Decimal("0"),
        **values,
    )


def test_refunds_are_subtracted() -> None:
    summaries = aggregate(
        [
            _transaction(total_value_vat="100.00", total_value_vat_incl="121.00"),
            _transaction(TransactionType.REFUND, total_value_vat="40.00", total_value_vat_incl="48.40"),
        ]
    )
    spain = summaries["ES"]
    assert spain.totals["total_value_vat"] == Decimal("60.00")
    assert spain.totals["total_value_vat_incl"] == Decimal("72.60")
    assert spain.totals["total_gift_wrap_vat"] == Decimal("0.00")


def test_sum_is_rounded_once_to_cents() -> None:
    summaries = aggregate([_transaction(total_value_vat="33.33") for _ in range(3)])
    assert summaries["ES"].totals["total_value_vat"] == Decimal("99.99")

    summaries = aggregate([_transaction(total_value_vat="0.0025") for _ in range(2)])
    assert summaries["ES"].totals["total_value_vat"] == Decimal("0.01")


def test_round_cents_rounds_halves_away_from_zero() -> None:
    assert round_cents(Decimal("2.675")) == Decimal("2.68")
    assert round_cents(Decimal("-2.675")) == Decimal("-2.68")
    assert round_cents(Decimal("2.674")) == Decimal("2.67")


def test_blank_jurisdiction_groups_under_unknown() -> None:
    summaries = aggregate(
        [
            _transaction(jurisdiction="", total_value_vat="1"),
            _transaction(jurisdiction=None, total_value_vat="2"),
            _transaction(jurisdiction="  ", total_value_vat="3"),
        ]
    )
    assert list(summaries) == [UNKNOWN_JURISDICTION]
    assert summaries[UNKNOWN_JURISDICTION].totals["total_value_vat"] == Decimal("6.00")


def test_groups_keep_first_seen_order_and_currency() -> None:
    summaries = aggregate(
        [
            _transaction(jurisdiction="FR", currency=""),
            _transaction(jurisdiction="ES", currency="PLN"),
            _transaction(jurisdiction="FR", currency="SEK"),
        ]
    )
    assert list(summaries) == ["FR", "ES"]
    assert summaries["FR"].currency_code == "EUR"
    assert summaries["ES"].currency_code == "PLN"
    assert summaries["FR"].to_dict()["country_code"] == "FR"


def test_empty_input_aggregates_to_nothing() -> None:
    assert aggregate([]) == {}


def test_detail_rows_are_newest_first() -> None:
    rows = detail_rows(
        [
            _transaction(transaction_date=date(2025, 3, 1)),
            _transaction(transaction_date=date(2025, 3, 20)),
            _transaction(transaction_date=date(2025, 3, 10)),
        ]
    )
    assert [row["transaction_date"] for row in rows] == [
        date(2025, 3, 20),
        date(2025, 3, 10),
        date(2025, 3, 1),
    ]
    assert set(rows[0]) == {
        "id",
        "transaction_type",
        "transaction_date",
        "item_description",
        "item_quantity",
        "total_value_vat_excl",
        "total_value_vat",
        "total_value_vat_incl",
        "transaction_currency_code",
    }
