"""Schemas for VAT report endpoints."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from vatreport.models import TransactionType


class PeriodRead(BaseModel):
    year: int
    period: str
    label: str
    kind: str


class AvailablePeriodsResponse(BaseModel):
    user_id: str
    frequency: str
    count: int
    periods: list[PeriodRead]


class DateRangeRead(BaseModel):
    start: datetime
    end: datetime


class AggregateSummaryRead(BaseModel):
    country_code: str
    currency_code: str
    total_price_of_items_vat: Decimal
    total_ship_charge_vat: Decimal
    total_gift_wrap_vat: Decimal
    total_value_vat: Decimal
    total_price_of_items_vat_incl: Decimal
    total_ship_charge_vat_incl: Decimal
    total_gift_wrap_vat_incl: Decimal
    total_value_vat_incl: Decimal


class AggregateResponse(BaseModel):
    year: int
    period: str
    label: str
    range: DateRangeRead
    summaries: list[AggregateSummaryRead]


class TransactionDetailRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: str
    transaction_type: TransactionType
    transaction_date: date
    item_description: str
    item_quantity: int
    total_value_vat_excl: Decimal
    total_value_vat: Decimal
    total_value_vat_incl: Decimal
    transaction_currency_code: str


class CountryTransactionsResponse(BaseModel):
    country: str
    country_name: str
    year: int
    period: str
    count: int
    transactions: list[TransactionDetailRead]


class IngestResponse(BaseModel):
    accepted: int
    inserted: int
    skipped: int
    skipped_by_reason: dict[str, int]


class UploadQueuedResponse(BaseModel):
    upload_id: str
    location: str
    status: str


__all__ = [
    "AggregateResponse",
    "AggregateSummaryRead",
    "AvailablePeriodsResponse",
    "CountryTransactionsResponse",
    "DateRangeRead",
    "IngestResponse",
    "PeriodRead",
    "TransactionDetailRead",
    "UploadQueuedResponse",
]
