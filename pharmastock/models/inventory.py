# pharmastock/models/inventory.py

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from pharmastock.database import Base
from pharmastock.models.products import Product


class InventoryBatch(Base):
    """One received lot of one product. Quantities only move through the batch ledger."""

    __tablename__ = "inventory_batches"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=True, index=True)

    batch_number = Column(String(64), nullable=False)
    quantity_on_hand = Column(Integer, nullable=False)

    cost_price = Column(Numeric(10, 2), nullable=False)
    selling_price = Column(Numeric(10, 2), nullable=False)

    received_date = Column(Date, nullable=False)
    expiry_date = Column(Date, nullable=False)

    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    product = relationship(Product)

    __table_args__ = (
        UniqueConstraint("product_id", "batch_number", name="uq_product_batch_number"),
        Index("ix_inventory_batches_product_expiry", "product_id", "expiry_date"),
        CheckConstraint("quantity_on_hand >= 0", name="ck_batch_quantity_non_negative"),
        CheckConstraint("cost_price > 0", name="ck_batch_cost_price_positive"),
        CheckConstraint("selling_price > 0", name="ck_batch_selling_price_positive"),
        CheckConstraint("expiry_date >= received_date", name="ck_batch_expiry_after_received"),
    )


class InventoryAdjustmentType(str, enum.Enum):
    COUNT_VARIANCE = "COUNT_VARIANCE"
    DAMAGED_GOODS = "DAMAGED_GOODS"
    EXPIRED_REMOVAL = "EXPIRED_REMOVAL"
    INITIAL_STOCK = "INITIAL_STOCK"
    OTHER = "OTHER"


class InventoryAdjustment(Base):
    __tablename__ = "inventory_adjustments"

    id = Column(Integer, primary_key=True, index=True)

    batch_id = Column(Integer, ForeignKey("inventory_batches.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    performed_by_id = Column(Integer, ForeignKey("pharmacy_users.id"), nullable=False)

    adjustment_type = Column(Enum(InventoryAdjustmentType, name="inventory_adjustment_type"), nullable=False)
    quantity_change = Column(Integer, nullable=False)
    reason = Column(String(255), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    batch = relationship(InventoryBatch)

    __table_args__ = (
        CheckConstraint("quantity_change <> 0", name="ck_adjustment_change_non_zero"),
    )
