# pharmastock/models/purchase_orders.py

import enum

from sqlalchemy import (
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
from pharmastock.models.suppliers import Supplier


class PurchaseOrderStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ORDERED = "ORDERED"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"


class PurchaseOrderLine(Base):
    __tablename__ = "purchase_order_lines"

    id = Column(Integer, primary_key=True, index=True)

    purchase_order_id = Column(
        Integer,
        ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    line_number = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_cost = Column(Numeric(10, 2), nullable=False)

    purchase_order = relationship("PurchaseOrder", back_populates="lines")
    product = relationship(Product)

    __table_args__ = (
        UniqueConstraint("purchase_order_id", "line_number", name="uq_purchase_order_line_number"),
        CheckConstraint("quantity > 0", name="ck_po_line_quantity_positive"),
        CheckConstraint("unit_cost > 0", name="ck_po_line_unit_cost_positive"),
    )

    @property
    def line_total(self):
        return self.unit_cost * self.quantity


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True, index=True)
    order_code = Column(String(64), nullable=False, unique=True, index=True)

    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False, index=True)
    status = Column(
        Enum(PurchaseOrderStatus, name="purchase_order_status"),
        nullable=False,
        default=PurchaseOrderStatus.DRAFT,
    )

    order_date = Column(Date, nullable=False)
    expected_date = Column(Date, nullable=True)

    created_by_id = Column(Integer, ForeignKey("pharmacy_users.id"), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    supplier = relationship(Supplier)
    lines = relationship(
        PurchaseOrderLine,
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by=PurchaseOrderLine.line_number,
    )

    __table_args__ = (
        Index("ix_purchase_orders_status_date", "status", "order_date"),
    )

    def add_line(self, product_id: int, quantity: int, unit_cost) -> PurchaseOrderLine:
        line = PurchaseOrderLine(
            product_id=product_id,
            quantity=quantity,
            unit_cost=unit_cost,
            line_number=len(self.lines) + 1,
        )
        self.lines.append(line)
        return line

    @property
    def total_cost(self):
        return sum((line.line_total for line in self.lines), 0)
