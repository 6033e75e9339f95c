"""Fiscal period resolution: period tokens, UTC date ranges and discovery."""
from __future__ import annotations

import calendar
import enum
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timezone

_QUARTER_TOKEN = re.compile(r"^Q([1-4])$")
_MONTH_TOKEN = re.compile(r"^(0?[1-9]|1[0-2])$")


class InvalidPeriodError(ValueError):
    """Raised for a period token, year or frequency that names no fiscal period."""


class PeriodKind(str, enum.Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"


def parse_frequency(value: str | None) -> PeriodKind:
    """Parse a tax frequency; absent means monthly."""
    if value is None or not value.strip():
        return PeriodKind.MONTHLY
    try:
        return PeriodKind(value.strip().upper())
    except ValueError as exc:
        raise InvalidPeriodError(f"Unknown tax frequency '{value}'") from exc


@dataclass(slots=True, frozen=True)
class DateRange:
    """Half-open ``[start, end)`` interval of UTC instants."""

    start: datetime
    end: datetime

    def contains(self, value: date) -> bool:
        return self.start.date() <= value < self.end.date()


@dataclass(slots=True, frozen=True)
class Period:
    year: int
    kind: PeriodKind
    index: int

    @property
    def token(self) -> str:
        if self.kind is PeriodKind.QUARTERLY:
            return f"Q{self.index}"
        return f"{self.index:02d}"

    @property
    def label(self) -> str:
        if self.kind is PeriodKind.QUARTERLY:
            return f"{self.token} {self.year}"
        return f"{calendar.month_name[self.index]} {self.year}"

    @property
    def first_month(self) -> int:
        if self.kind is PeriodKind.QUARTERLY:
            return (self.index - 1) * 3 + 1
        return self.index

    @property
    def month_count(self) -> int:
        return 3 if self.kind is PeriodKind.QUARTERLY else 1

    def date_range(self) -> DateRange:
        start = datetime(self.year, self.first_month, 1, tzinfo=timezone.utc)
        end_month_offset = self.first_month - 1 + self.month_count
        end = datetime(
            self.year + end_month_offset // 12, end_month_offset % 12 + 1, 1, tzinfo=timezone.utc
        )
        return DateRange(start=start, end=end)

    def to_dict(self) -> dict[str, object]:
        return {"year": self.year, "period": self.token, "label": self.label, "kind": self.kind.value}


def parse_period(year: int | str, token: str | None) -> Period:
    """Resolve ``(year, token)`` into a :class:`Period`.

    ``token`` is ``"Q1"``..``"Q4"`` or a month ``"01"``..``"12"``.
    """
    try:
        year_value = int(year)
    except (TypeError, ValueError) as exc:
        raise InvalidPeriodError(f"Invalid year '{year}'") from exc
    # The last representable period must still have an exclusive end date.
    if not 1 <= year_value <= 9998:
        raise InvalidPeriodError(f"Year {year_value} is out of range")

    text = (token or "").strip().upper()
    quarter = _QUARTER_TOKEN.match(text)
    if quarter:
        return Period(year=year_value, kind=PeriodKind.QUARTERLY, index=int(quarter.group(1)))
    month = _MONTH_TOKEN.match(text)
    if month:
        return Period(year=year_value, kind=PeriodKind.MONTHLY, index=int(month.group(1)))
    raise InvalidPeriodError(f"Invalid period '{token}'")


def period_of(value: date, kind: PeriodKind) -> Period:
    if kind is PeriodKind.QUARTERLY:
        return Period(year=value.year, kind=kind, index=(value.month - 1) // 3 + 1)
    return Period(year=value.year, kind=kind, index=value.month)


def sort_periods(periods: Iterable[Period]) -> list[Period]:
    """Newest year first, then token descending by plain string comparison."""
    return sorted(periods, key=lambda period: (period.year, period.token), reverse=True)


def discover_periods(dates: Iterable[date | datetime], kind: PeriodKind) -> list[Period]:
    """Return the distinct periods covering ``dates``, newest first."""
    found: set[Period] = set()
    for value in dates:
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(timezone.utc)
            value = value.date()
        found.add(period_of(value, kind))
    return sort_periods(found)


__all__ = [
    "DateRange",
    "InvalidPeriodError",
    "Period",
    "PeriodKind",
    "discover_periods",
    "parse_frequency",
    "parse_period",
    "period_of",
    "sort_periods",
]
