from __future__ import annotations

import pytest

from vatreport.core.config import Settings
from vatreport.services.filters import (
    REASON_INVALID_AMOUNT,
    REASON_INVALID_DATE,
    REASON_TAX_SCHEME,
    REASON_TRANSACTION_TYPE,
    TransactionFilter,
)
from vatreport.services.normalization import AmountPolicy, build_report_row


def _row(**overrides: str):
    record = {
        "TRANSACTION_TYPE": "SALE",
        "TAX_REPORTING_SCHEME": "UNION-OSS",
        "TRANSACTION_COMPLETE_DATE": "19-03-2025",
        **overrides,
    }
    return build_report_row(record, amount_policy=AmountPolicy.REJECT_ROW)


@pytest.fixture()
def row_filter() -> TransactionFilter:
    return TransactionFilter.from_settings(Settings())


def test_accepts_sales_and_refunds_under_target_scheme(row_filter: TransactionFilter) -> None:
    assert row_filter.evaluate(_row()).accepted
    assert row_filter.evaluate(_row(TRANSACTION_TYPE="refund")).accepted


@pytest.mark.parametrize(
    ("overrides", "reason"),
    [
        ({"TRANSACTION_COMPLETE_DATE": ""}, REASON_INVALID_DATE),
        ({"TRANSACTION_COMPLETE_DATE": "31-02-2025"}, REASON_INVALID_DATE),
        ({"TRANSACTION_TYPE": "FC_TRANSFER"}, REASON_TRANSACTION_TYPE),
        ({"TRANSACTION_TYPE": ""}, REASON_TRANSACTION_TYPE),
        ({"TAX_REPORTING_SCHEME": "REGULAR"}, REASON_TAX_SCHEME),
        ({"TAX_REPORTING_SCHEME": ""}, REASON_TAX_SCHEME),
        ({"TOTAL_ACTIVITY_VALUE_VAT_AMT": "abc"}, REASON_INVALID_AMOUNT),
    ],
)
def test_rejects_with_reason(row_filter: TransactionFilter, overrides: dict[str, str], reason: str) -> None:
    decision = row_filter.evaluate(_row(**overrides))
    assert not decision.accepted
    assert decision.reason == reason


def test_date_is_checked_before_type() -> None:
    row_filter = TransactionFilter(allowed_types=["SALE"], target_scheme="UNION-OSS")
    decision = row_filter.evaluate(_row(TRANSACTION_TYPE="REFUND", TRANSACTION_COMPLETE_DATE="bad"))
    assert decision.reason == REASON_INVALID_DATE


def test_configured_types_narrow_acceptance() -> None:
    row_filter = TransactionFilter(allowed_types=["sale"], target_scheme="union-oss")
    assert row_filter.allowed_types == frozenset({"SALE"})
    assert row_filter.target_scheme == "UNION-OSS"
    assert row_filter.evaluate(_row(TRANSACTION_TYPE="REFUND")).reason == REASON_TRANSACTION_TYPE


def test_unknown_configured_type_is_rejected() -> None:
    with pytest.raises(ValueError):
        TransactionFilter(allowed_types=["SALE", "RETURN"], target_scheme="UNION-OSS")
