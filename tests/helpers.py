"""Report fixtures shared by unit and integration tests."""
from __future__ import annotations

import csv
import io
from collections.abc import Mapping, Sequence

USER_ID = "seller-1"

REPORT_COLUMNS: tuple[str, ...] = (
    "TRANSACTION_EVENT_ID",
    "ASIN",
    "TRANSACTION_TYPE",
    "TAX_REPORTING_SCHEME",
    "TRANSACTION_COMPLETE_DATE",
    "ITEM_DESCRIPTION",
    "QTY",
    "TRANSACTION_CURRENCY_CODE",
    "SALE_DEPART_COUNTRY",
    "SALE_ARRIVAL_COUNTRY",
    "TAXABLE_JURISDICTION",
    "TOTAL_ACTIVITY_VALUE_AMT_VAT_EXCL",
    "TOTAL_ACTIVITY_VALUE_VAT_AMT",
    "TOTAL_ACTIVITY_VALUE_AMT_VAT_INCL",
)


def report_row(event_id: str, **overrides: str) -> dict[str, str]:
    """A UNION-OSS sale shipped from DE to ES unless overridden."""
    row = {
        "TRANSACTION_EVENT_ID": event_id,
        "ASIN": f"ASIN-{event_id}",
        "TRANSACTION_TYPE": "SALE",
        "TAX_REPORTING_SCHEME": "UNION-OSS",
        "TRANSACTION_COMPLETE_DATE": "19-03-2025",
        "ITEM_DESCRIPTION": "Ceramic mug",
        "QTY": "1",
        "TRANSACTION_CURRENCY_CODE": "EUR",
        "SALE_DEPART_COUNTRY": "DE",
        "SALE_ARRIVAL_COUNTRY": "ES",
        "TAXABLE_JURISDICTION": "ES",
        "TOTAL_ACTIVITY_VALUE_AMT_VAT_EXCL": "100.00",
        "TOTAL_ACTIVITY_VALUE_VAT_AMT": "21.00",
        "TOTAL_ACTIVITY_VALUE_AMT_VAT_INCL": "121.00",
    }
    row.update(overrides)
    return row


def report_csv(rows: Sequence[Mapping[str, str]], columns: Sequence[str] = REPORT_COLUMNS) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(columns), lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({column: row.get(column, "") for column in columns})
    return buffer.getvalue()
