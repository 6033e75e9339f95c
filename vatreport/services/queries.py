"""Read-side queries over ingested VAT transactions."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from vatreport.core.config import Settings, get_settings
from vatreport.models import USER_ID_MAX_LENGTH, TransactionType, VatTransaction
from vatreport.obs import traced
from vatreport.services.aggregation import AggregateSummary, aggregate, detail_rows
from vatreport.services.countries import country_name, country_variants
from vatreport.services.periods import (
    DateRange,
    Period,
    PeriodKind,
    discover_periods,
    parse_frequency,
    parse_period,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class AggregateReport:
    period: Period
    date_range: DateRange
    summaries: list[AggregateSummary] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class CountryReport:
    period: Period
    country: str
    country_name: str
    transactions: list[dict[str, Any]] = field(default_factory=list)


def _require_user(user_id: str | None) -> str:
    if not user_id or not user_id.strip():
        raise ValueError("user_id is required")
    if len(user_id) > USER_ID_MAX_LENGTH:
        raise ValueError(f"user_id exceeds {USER_ID_MAX_LENGTH} characters")
    return user_id


class ReportQueryService:
    """Period discovery and jurisdiction aggregation scoped to a single user."""

    def __init__(self, session: Session, *, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._types = [TransactionType(value.upper()) for value in self._settings.allowed_transaction_types]

    def list_available_periods(self, user_id: str, frequency: str | PeriodKind | None = None) -> list[Period]:
        _require_user(user_id)
        kind = frequency if isinstance(frequency, PeriodKind) else parse_frequency(frequency)
        statement = (
            select(VatTransaction.transaction_date)
            .where(VatTransaction.user_id == user_id)
            .distinct()
        )
        dates = self._session.scalars(statement).all()
        return discover_periods(dates, kind)

    def fetch_aggregates(self, user_id: str, year: int | str, period: str) -> AggregateReport:
        """Net VAT per taxable jurisdiction for one fiscal period."""
        _require_user(user_id)
        resolved = parse_period(year, period)
        date_range = resolved.date_range()
        with traced("report.aggregate", user_id=user_id, period=resolved.label) as span:
            transactions = self._session.scalars(self._period_query(user_id, date_range)).all()
            summaries = aggregate(transactions)
            span.set_attribute("report.transactions", len(transactions))
        logger.debug(
            "aggregated report period",
            extra={"user_id": user_id, "period": resolved.label, "jurisdictions": len(summaries)},
        )
        return AggregateReport(period=resolved, date_range=date_range, summaries=list(summaries.values()))

    def fetch_country_transactions(
        self, user_id: str, year: int | str, period: str, country: str
    ) -> CountryReport:
        """Unaggregated transactions taxed in, or shipped to, ``country``."""
        _require_user(user_id)
        if not country or not country.strip():
            raise ValueError("country is required")
        resolved = parse_period(year, period)
        variants = country_variants(country)
        statement = self._period_query(user_id, resolved.date_range()).where(
            or_(
                VatTransaction.taxable_jurisdiction.in_(variants),
                VatTransaction.arrival_country.in_(variants),
            )
        )
        transactions = self._session.scalars(statement).all()
        return CountryReport(
            period=resolved,
            country=variants[0],
            country_name=country_name(country),
            transactions=detail_rows(transactions),
        )

    def _period_query(self, user_id: str, date_range: DateRange) -> Any:
        return (
            select(VatTransaction)
            .where(
                VatTransaction.user_id == user_id,
                VatTransaction.transaction_type.in_(self._types),
                VatTransaction.transaction_date >= date_range.start.date(),
                VatTransaction.transaction_date < date_range.end.date(),
            )
            .order_by(VatTransaction.transaction_date, VatTransaction.ingested_at, VatTransaction.id)
        )


__all__ = ["AggregateReport", "CountryReport", "ReportQueryService"]
