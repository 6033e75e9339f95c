"""Pydantic schemas package."""

from .report import (
    AggregateResponse,
    AggregateSummaryRead,
    AvailablePeriodsResponse,
    CountryTransactionsResponse,
    DateRangeRead,
    IngestResponse,
    PeriodRead,
    TransactionDetailRead,
    UploadQueuedResponse,
)

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
