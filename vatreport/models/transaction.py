"""VAT report transaction ORM model."""
from __future__ import annotations

import enum
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import BigInteger, Date, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from vatreport.models.base import Base, IngestedAtMixin

AMOUNT_TYPE = Numeric(18, 6)
USER_ID_MAX_LENGTH = 64


class TransactionType(str, enum.Enum):
    SALE = "SALE"
    REFUND = "REFUND"


class VatTransaction(IngestedAtMixin, Base):
    """One accepted row of a VAT transaction report, immutable once written."""

    __tablename__ = "vat_transactions"
    __table_args__ = (
        UniqueConstraint("fingerprint", name="uq_vat_transactions_fingerprint"),
        Index("ix_vat_transactions_user_date", "user_id", "transaction_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(USER_ID_MAX_LENGTH), nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType, name="vat_transaction_type"), nullable=False
    )
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    item_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    item_quantity: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    transaction_currency_code: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    departure_country: Mapped[str] = mapped_column(Text, nullable=False, default="")
    arrival_country: Mapped[str] = mapped_column(Text, nullable=False, default="")
    taxable_jurisdiction: Mapped[str] = mapped_column(Text, nullable=False, default="")

    total_price_of_items_vat_excl: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False, default=0)
    total_ship_charge_vat_excl: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False, default=0)
    total_gift_wrap_vat_excl: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False, default=0)
    total_value_vat_excl: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False, default=0)
    total_price_of_items_vat: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False, default=0)
    total_ship_charge_vat: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False, default=0)
    total_gift_wrap_vat: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False, default=0)
    total_value_vat: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False, default=0)
    total_price_of_items_vat_incl: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False, default=0)
    total_ship_charge_vat_incl: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False, default=0)
    total_gift_wrap_vat_incl: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False, default=0)
    total_value_vat_incl: Mapped[Decimal] = mapped_column(AMOUNT_TYPE, nullable=False, default=0)


__all__ = ["AMOUNT_TYPE", "USER_ID_MAX_LENGTH", "TransactionType", "VatTransaction"]
