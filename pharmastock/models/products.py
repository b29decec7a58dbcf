# pharmastock/models/products.py

import enum

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Enum, Integer, String
from sqlalchemy.sql import func

from pharmastock.database import Base


class ProductCategory(str, enum.Enum):
    PRESCRIPTION = "PRESCRIPTION"
    OVER_THE_COUNTER = "OVER_THE_COUNTER"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)

    active_ingredient = Column(String(255), nullable=True)
    dosage_form = Column(String(128), nullable=True)
    dosage_strength = Column(String(64), nullable=True)

    category = Column(Enum(ProductCategory, name="product_category"), nullable=False)

    # Alert configuration; null means "not configured"
    reorder_level = Column(Integer, nullable=True)
    min_stock = Column(Integer, nullable=True)
    expiry_alert_days = Column(Integer, nullable=True)

    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("reorder_level IS NULL OR reorder_level >= 0", name="ck_reorder_level_non_negative"),
        CheckConstraint("min_stock IS NULL OR min_stock >= 0", name="ck_min_stock_non_negative"),
        CheckConstraint("expiry_alert_days IS NULL OR expiry_alert_days >= 0", name="ck_expiry_alert_days_non_negative"),
    )

    @property
    def low_stock_threshold(self) -> int | None:
        if self.reorder_level is not None:
            return self.reorder_level
        return self.min_stock
