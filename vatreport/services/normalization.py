"""Row normalization for VAT transaction report extracts.

Every parser here is total: bad input produces a failed :class:`ParseResult`
instead of an exception, and the caller decides whether a failure means a
zero default or a rejected row.
"""
from __future__ import annotations

import enum
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Generic, TypeVar

T = TypeVar("T")

_BOM = "\ufeff"
_NUMERIC_PREFIX = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_INTEGER_PREFIX = re.compile(r"[+-]?\d+")
_CURRENCY_CODE = re.compile(r"[A-Z]{3}")
_TIME_SUFFIX = re.compile(r"[\sT]")
_FALLBACK_DATE_FORMATS = ("%Y/%m/%d", "%Y/%m/%d %H:%M:%S", "%d %b %Y", "%b %d, %Y", "%d %B %Y", "%B %d, %Y")

ZERO = Decimal("0")
# Numeric(18, 6) keeps twelve integer digits.
MAX_AMOUNT_EXPONENT = 11
AMOUNT_QUANTUM = Decimal("0.000001")
MAX_QUANTITY = 2**63 - 1


@dataclass(slots=True, frozen=True)
class ParseResult(Generic[T]):
    """Outcome of parsing one raw field: a value or an error message."""

    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def value_or(self, default: T) -> T:
        if self.error is not None or self.value is None:
            return default
        return self.value

    @classmethod
    def success(cls, value: T) -> "ParseResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> "ParseResult[T]":
        return cls(error=error)


class AmountPolicy(str, enum.Enum):
    """What to do with a monetary field that cannot be parsed."""

    ZERO_ON_ERROR = "ZERO_ON_ERROR"
    REJECT_ROW = "REJECT_ROW"


def normalize_header(header: str | None) -> str:
    """Strip byte-order marks and whitespace from a column name, upper-cased."""
    if header is None:
        return ""
    return header.replace(_BOM, "").strip().upper()


def normalize_record(raw: Mapping[str | None, object]) -> dict[str, str | None]:
    """Re-key a parsed CSV record by normalized header.

    ``csv.DictReader`` stores surplus cells under the ``None`` key; they carry
    no column name and are dropped. Cell values are kept as-is.
    """
    record: dict[str, str | None] = {}
    for key, value in raw.items():
        if key is None:
            continue
        name = normalize_header(key)
        if not name or name in record:
            continue
        record[name] = value if value is None or isinstance(value, str) else str(value)
    return record


def first_value(record: Mapping[str, str | None], aliases: Sequence[str]) -> str:
    """Return the first non-blank value among ``aliases``, or ``""``."""
    for alias in aliases:
        value = record.get(alias)
        if value is not None and value.strip():
            return value
    return ""


def parse_amount(raw: object) -> ParseResult[Decimal]:
    """Parse a report amount, accepting a decimal comma.

    Only the first comma is treated as the decimal separator, and the longest
    numeric prefix is used, so ``"12,50 EUR"`` parses as ``12.50``. Values that
    do not fit the stored precision, such as ``"1e13"``, are failures.
    """
    if raw is None:
        return ParseResult.failure("missing amount")
    text = str(raw).strip().replace(",", ".", 1)
    if not text:
        return ParseResult.failure("empty amount")
    match = _NUMERIC_PREFIX.match(text)
    if match is None:
        return ParseResult.failure(f"unrecognized amount: {raw!r}")
    try:
        value = Decimal(match.group(0))
    except InvalidOperation:
        return ParseResult.failure(f"unrecognized amount: {raw!r}")
    if not value.is_finite():
        return ParseResult.failure(f"unrecognized amount: {raw!r}")
    if value and (
        value.adjusted() > MAX_AMOUNT_EXPONENT
        or value.quantize(AMOUNT_QUANTUM).adjusted() > MAX_AMOUNT_EXPONENT
    ):
        return ParseResult.failure(f"amount out of range: {raw!r}")
    return ParseResult.success(value)


def parse_quantity(raw: object) -> ParseResult[int]:
    if raw is None:
        return ParseResult.failure("missing quantity")
    match = _INTEGER_PREFIX.match(str(raw).strip())
    if match is None:
        return ParseResult.failure(f"unrecognized quantity: {raw!r}")
    value = int(match.group(0))
    if abs(value) > MAX_QUANTITY:
        return ParseResult.failure(f"quantity out of range: {raw!r}")
    return ParseResult.success(value)


def _day_month_year(parts: list[str]) -> ParseResult[date]:
    day, month, year = parts
    if not (day.isdigit() and month.isdigit() and year.isdigit()):
        return ParseResult.failure(f"non-numeric date parts: {'/'.join(parts)!r}")
    try:
        return ParseResult.success(date(int(year), int(month), int(day)))
    except ValueError as exc:
        return ParseResult.failure(str(exc))


def parse_report_date(raw: object) -> ParseResult[date]:
    """Normalize a report date to a calendar date.

    ``DD-MM-YYYY`` and ``DD/MM/YYYY`` (optionally followed by a time, which is
    discarded) are read as day-month-year whenever the first part has at most
    two characters and the last has four. ``05-03-2025`` is therefore the 5th
    of March, never May 3rd. Anything else is handed to the ISO-8601 parser.
    """
    if raw is None:
        return ParseResult.failure("missing date")
    text = str(raw).strip()
    if not text:
        return ParseResult.failure("empty date")

    for separator in ("-", "/"):
        if separator not in text:
            continue
        date_part = _TIME_SUFFIX.split(text, maxsplit=1)[0]
        parts = date_part.split(separator)
        if len(parts) == 3 and len(parts[0]) <= 2 and len(parts[2]) == 4:
            return _day_month_year(parts)
        break

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        for fmt in _FALLBACK_DATE_FORMATS:
            try:
                return ParseResult.success(datetime.strptime(text, fmt).date())
            except ValueError:
                continue
        return ParseResult.failure(f"unrecognized date: {raw!r}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return ParseResult.success(parsed.date())


@dataclass(slots=True, frozen=True)
class MoneyField:
    """A persisted monetary field and the report columns that feed it."""

    attribute: str
    aliases: tuple[str, ...]


def _money(attribute: str, column: str) -> MoneyField:
    return MoneyField(attribute=attribute, aliases=(f"TOTAL_{column}", column))


MONEY_FIELDS: tuple[MoneyField, ...] = (
    _money("total_price_of_items_vat_excl", "PRICE_OF_ITEMS_AMT_VAT_EXCL"),
    _money("total_ship_charge_vat_excl", "SHIP_CHARGE_AMT_VAT_EXCL"),
    _money("total_gift_wrap_vat_excl", "GIFT_WRAP_AMT_VAT_EXCL"),
    _money("total_value_vat_excl", "ACTIVITY_VALUE_AMT_VAT_EXCL"),
    _money("total_price_of_items_vat", "PRICE_OF_ITEMS_VAT_AMT"),
    _money("total_ship_charge_vat", "SHIP_CHARGE_VAT_AMT"),
    _money("total_gift_wrap_vat", "GIFT_WRAP_VAT_AMT"),
    _money("total_value_vat", "ACTIVITY_VALUE_VAT_AMT"),
    _money("total_price_of_items_vat_incl", "PRICE_OF_ITEMS_AMT_VAT_INCL"),
    _money("total_ship_charge_vat_incl", "SHIP_CHARGE_AMT_VAT_INCL"),
    _money("total_gift_wrap_vat_incl", "GIFT_WRAP_AMT_VAT_INCL"),
    _money("total_value_vat_incl", "ACTIVITY_VALUE_AMT_VAT_INCL"),
)

DATE_COLUMNS = ("TRANSACTION_COMPLETE_DATE", "TAX_CALCULATION_DATE")
QUANTITY_COLUMNS = ("QTY", "QUANTITY")
DEPARTURE_COLUMNS = ("SALE_DEPART_COUNTRY", "DEPARTURE_COUNTRY")
ARRIVAL_COLUMNS = ("SALE_ARRIVAL_COUNTRY", "ARRIVAL_COUNTRY")


@dataclass(slots=True)
class ReportRow:
    """A report record mapped onto the canonical transaction fields."""

    event_id: str
    transaction_type: str
    tax_reporting_scheme: str
    raw_date: str
    transaction_date: ParseResult[date]
    item_description: str
    item_quantity: int
    currency_code: str
    departure_country: str
    arrival_country: str
    taxable_jurisdiction: str
    amounts: dict[str, Decimal]
    amount_errors: dict[str, str]

    def to_values(self) -> dict[str, object]:
        """Column values for persistence; requires a successfully parsed date."""
        values: dict[str, object] = {
            "transaction_type": self.transaction_type,
            "transaction_date": self.transaction_date.value,
            "item_description": self.item_description,
            "item_quantity": self.item_quantity,
            "transaction_currency_code": self.currency_code,
            "departure_country": self.departure_country,
            "arrival_country": self.arrival_country,
            "taxable_jurisdiction": self.taxable_jurisdiction,
        }
        values.update(self.amounts)
        return values


def build_report_row(
    record: Mapping[str, str | None],
    *,
    amount_policy: AmountPolicy = AmountPolicy.ZERO_ON_ERROR,
) -> ReportRow:
    """Build a :class:`ReportRow` from a header-normalized record.

    Missing columns fail closed to empty strings and zero amounts. Under
    ``ZERO_ON_ERROR`` a present-but-garbled amount is also zero; under
    ``REJECT_ROW`` it is reported in ``amount_errors`` for the filter to act on.
    Absent amount columns are never an error.
    """
    raw_date = first_value(record, DATE_COLUMNS)
    amounts: dict[str, Decimal] = {}
    amount_errors: dict[str, str] = {}
    for field in MONEY_FIELDS:
        raw_amount = first_value(record, field.aliases)
        result = parse_amount(raw_amount)
        amounts[field.attribute] = result.value_or(ZERO)
        if raw_amount and not result.ok and amount_policy is AmountPolicy.REJECT_ROW:
            amount_errors[field.attribute] = result.error or "invalid amount"

    currency = first_value(record, ("TRANSACTION_CURRENCY_CODE",)).strip().upper()
    return ReportRow(
        event_id=first_value(record, ("TRANSACTION_EVENT_ID",)).strip(),
        transaction_type=first_value(record, ("TRANSACTION_TYPE",)).strip().upper(),
        tax_reporting_scheme=first_value(record, ("TAX_REPORTING_SCHEME",)).strip().upper(),
        raw_date=raw_date,
        transaction_date=parse_report_date(raw_date),
        item_description=first_value(record, ("ITEM_DESCRIPTION",)),
        item_quantity=parse_quantity(first_value(record, QUANTITY_COLUMNS)).value_or(0),
        currency_code=currency if _CURRENCY_CODE.fullmatch(currency) else "EUR",
        departure_country=first_value(record, DEPARTURE_COLUMNS).strip(),
        arrival_country=first_value(record, ARRIVAL_COLUMNS).strip(),
        taxable_jurisdiction=first_value(record, ("TAXABLE_JURISDICTION",)).strip(),
        amounts=amounts,
        amount_errors=amount_errors,
    )


__all__ = [
    "AmountPolicy",
    "DATE_COLUMNS",
    "MAX_AMOUNT_EXPONENT",
    "MAX_QUANTITY",
    "MONEY_FIELDS",
    "MoneyField",
    "ParseResult",
    "ReportRow",
    "build_report_row",
    "first_value",
    "normalize_header",
    "normalize_record",
    "parse_amount",
    "parse_quantity",
    "parse_report_date",
]
