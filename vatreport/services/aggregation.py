"""Per-jurisdiction VAT aggregation over stored transactions."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Protocol

from vatreport.models import TransactionType

UNKNOWN_JURISDICTION = "UNKNOWN"
DEFAULT_CURRENCY = "EUR"
CENTS = Decimal("0.01")

SUMMARY_FIELDS: tuple[str, ...] = (
    "total_price_of_items_vat",
    "total_ship_charge_vat",
    "total_gift_wrap_vat",
    "total_value_vat",
    "total_price_of_items_vat_incl",
    "total_ship_charge_vat_incl",
    "total_gift_wrap_vat_incl",
    "total_value_vat_incl",
)

DETAIL_FIELDS: tuple[str, ...] = (
    "id",
    "transaction_type",
    "transaction_date",
    "item_description",
    "item_quantity",
    "total_value_vat_excl",
    "total_value_vat",
    "total_value_vat_incl",
    "transaction_currency_code",
)


class AggregatableTransaction(Protocol):
    transaction_type: Any
    transaction_date: date
    taxable_jurisdiction: str | None
    transaction_currency_code: str | None


def round_cents(value: Decimal) -> Decimal:
    """Round to cents, halves away from zero."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def transaction_sign(transaction_type: Any) -> int:
    value = getattr(transaction_type, "value", transaction_type)
    return -1 if value == TransactionType.REFUND.value else 1


@dataclass(slots=True)
class AggregateSummary:
    """Net VAT figures for one jurisdiction."""

    country_code: str
    currency_code: str
    totals: dict[str, Decimal] = field(
        default_factory=lambda: {name: Decimal("0") for name in SUMMARY_FIELDS}
    )

    def add(self, transaction: AggregatableTransaction) -> None:
        sign = transaction_sign(transaction.transaction_type)
        for name in SUMMARY_FIELDS:
            self.totals[name] += _to_decimal(getattr(transaction, name, None)) * sign

    def rounded(self) -> "AggregateSummary":
        return AggregateSummary(
            country_code=self.country_code,
            currency_code=self.currency_code,
            totals={name: round_cents(value) for name, value in self.totals.items()},
        )

    def to_dict(self) -> dict[str, Any]:
        return {"country_code": self.country_code, "currency_code": self.currency_code, **self.totals}


def jurisdiction_of(transaction: AggregatableTransaction) -> str:
    jurisdiction = (transaction.taxable_jurisdiction or "").strip()
    return jurisdiction or UNKNOWN_JURISDICTION


def aggregate(transactions: Iterable[AggregatableTransaction]) -> dict[str, AggregateSummary]:
    """Group by taxable jurisdiction and net refunds against sales.

    A group's currency is taken from its first row and not checked against
    later rows. Totals accumulate unrounded and are rounded to cents once.
    """
    groups: dict[str, AggregateSummary] = {}
    for transaction in transactions:
        key = jurisdiction_of(transaction)
        summary = groups.get(key)
        if summary is None:
            summary = AggregateSummary(
                country_code=key,
                currency_code=(transaction.transaction_currency_code or "").strip() or DEFAULT_CURRENCY,
            )
            groups[key] = summary
        summary.add(transaction)
    return {key: summary.rounded() for key, summary in groups.items()}


def detail_rows(transactions: Iterable[Any]) -> list[dict[str, Any]]:
    """Unaggregated listing of the detail columns, newest first."""
    rows = [{name: getattr(transaction, name) for name in DETAIL_FIELDS} for transaction in transactions]
    rows.sort(key=lambda row: row["transaction_date"], reverse=True)
    return rows


__all__ = [
    "AggregateSummary",
    "CENTS",
    "DETAIL_FIELDS",
    "SUMMARY_FIELDS",
    "UNKNOWN_JURISDICTION",
    "aggregate",
    "detail_rows",
    "jurisdiction_of",
    "round_cents",
    "transaction_sign",
]
