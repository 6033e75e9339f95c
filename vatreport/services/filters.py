"""Business rules deciding which report rows become transactions."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from vatreport.core.config import Settings
from vatreport.models import TransactionType
from vatreport.services.normalization import ReportRow

REASON_INVALID_DATE = "invalid_date"
REASON_TRANSACTION_TYPE = "transaction_type"
REASON_TAX_SCHEME = "tax_scheme"
REASON_INVALID_AMOUNT = "invalid_amount"


@dataclass(slots=True, frozen=True)
class FilterDecision:
    accepted: bool
    reason: str | None = None


ACCEPTED = FilterDecision(accepted=True)


class TransactionFilter:
    """Accepts rows of an allowed transaction type under the target tax scheme.

    The allowed types and the scheme are configuration, never request input.
    """

    def __init__(self, *, allowed_types: Iterable[str], target_scheme: str) -> None:
        self._allowed_types = frozenset(value.strip().upper() for value in allowed_types)
        unknown = self._allowed_types - {member.value for member in TransactionType}
        if unknown:
            raise ValueError(f"Unsupported transaction types: {', '.join(sorted(unknown))}")
        self._target_scheme = target_scheme.strip().upper()

    @classmethod
    def from_settings(cls, settings: Settings) -> "TransactionFilter":
        return cls(
            allowed_types=settings.allowed_transaction_types,
            target_scheme=settings.target_tax_scheme,
        )

    @property
    def allowed_types(self) -> frozenset[str]:
        return self._allowed_types

    @property
    def target_scheme(self) -> str:
        return self._target_scheme

    def evaluate(self, row: ReportRow) -> FilterDecision:
        if not row.transaction_date.ok:
            return FilterDecision(accepted=False, reason=REASON_INVALID_DATE)
        if row.transaction_type not in self._allowed_types:
            return FilterDecision(accepted=False, reason=REASON_TRANSACTION_TYPE)
        if row.tax_reporting_scheme != self._target_scheme:
            return FilterDecision(accepted=False, reason=REASON_TAX_SCHEME)
        if row.amount_errors:
            return FilterDecision(accepted=False, reason=REASON_INVALID_AMOUNT)
        return ACCEPTED


__all__ = [
    "ACCEPTED",
    "FilterDecision",
    "REASON_INVALID_AMOUNT",
    "REASON_INVALID_DATE",
    "REASON_TAX_SCHEME",
    "REASON_TRANSACTION_TYPE",
    "TransactionFilter",
]
