# pharmastock/models/sale_items.py

from decimal import Decimal

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship

from pharmastock.database import Base
from pharmastock.models.inventory import InventoryBatch
from pharmastock.models.products import Product


class SaleTransactionLine(Base):
    __tablename__ = "sale_transaction_lines"

    id = Column(Integer, primary_key=True, index=True)

    sale_id = Column(Integer, ForeignKey("sale_transactions.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    # The FEFO batch this line was drawn from
    batch_id = Column(Integer, ForeignKey("inventory_batches.id"), nullable=True, index=True)

    line_number = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)

    sale = relationship("SaleTransaction", back_populates="lines")
    product = relationship(Product)
    batch = relationship(InventoryBatch)

    __table_args__ = (
        UniqueConstraint("sale_id", "line_number", name="uq_sale_line_number"),
        CheckConstraint("quantity > 0", name="ck_sale_line_quantity_positive"),
        CheckConstraint("unit_price > 0", name="ck_sale_line_unit_price_positive"),
    )

    def calculate_line_total(self) -> Decimal:
        return Decimal(self.unit_price) * self.quantity
