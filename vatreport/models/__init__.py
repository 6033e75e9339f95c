"""ORM models package."""
from .base import Base, IngestedAtMixin
from .transaction import AMOUNT_TYPE, USER_ID_MAX_LENGTH, TransactionType, VatTransaction

__all__ = [
    "AMOUNT_TYPE",
    "Base",
    "IngestedAtMixin",
    "TransactionType",
    "USER_ID_MAX_LENGTH",
    "VatTransaction",
]
