# pharmastock/models/sales.py

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from pharmastock.database import Base
from pharmastock.models.sale_items import SaleTransactionLine
from pharmastock.models.users import PharmacyUser


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    MOBILE_PAYMENT = "MOBILE_PAYMENT"


class SaleTransaction(Base):
    """Append-only POS record. Created together with its ledger deductions, never updated."""

    __tablename__ = "sale_transactions"

    id = Column(Integer, primary_key=True, index=True)
    receipt_number = Column(String(64), nullable=False, unique=True, index=True)

    sold_at = Column(DateTime(timezone=True), nullable=False, index=True)
    cashier_id = Column(Integer, ForeignKey("pharmacy_users.id"), nullable=False, index=True)

    total_discount = Column(Numeric(10, 2), nullable=True)
    total_amount = Column(Numeric(10, 2), nullable=False)

    payment_method = Column(Enum(PaymentMethod, name="payment_method"), nullable=True)
    prescription_image_url = Column(Text, nullable=True)
    customer_email = Column(String(128), nullable=True)

    cashier = relationship(PharmacyUser)
    lines = relationship(
        SaleTransactionLine,
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by=SaleTransactionLine.line_number,
    )

    __table_args__ = (
        Index("ix_sale_transactions_cashier_sold_at", "cashier_id", "sold_at"),
        CheckConstraint("total_discount IS NULL OR total_discount >= 0", name="ck_sale_discount_non_negative"),
        CheckConstraint("total_amount >= 0", name="ck_sale_total_non_negative"),
    )
