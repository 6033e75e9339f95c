"""Content fingerprints used to deduplicate report rows.

The hash covers the *raw* cell values of a fixed set of identity columns, so a
re-uploaded extract produces bit-identical fingerprints and is ignored by the
unique constraint on ``vat_transactions.fingerprint``.
"""
from __future__ import annotations

import hashlib
from collections.abc import Mapping

IDENTITY_COLUMNS: tuple[str, ...] = (
    "TRANSACTION_EVENT_ID",
    "ASIN",
    "TRANSACTION_TYPE",
    "TRANSACTION_COMPLETE_DATE",
    "TOTAL_ACTIVITY_VALUE_VAT_AMT",
)


def identity_string(record: Mapping[str, str | None]) -> str:
    """Join the identity columns with ``|`` and lower-case the result."""
    parts = [record.get(column) or "" for column in IDENTITY_COLUMNS]
    return "|".join(parts).lower()


def generate_fingerprint(record: Mapping[str, str | None]) -> str:
    """Return the SHA-256 hex digest identifying ``record``."""
    return hashlib.sha256(identity_string(record).encode("utf-8")).hexdigest()


__all__ = ["IDENTITY_COLUMNS", "generate_fingerprint", "identity_string"]
