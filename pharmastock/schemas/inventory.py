# pharmastock/schemas/inventory.py

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel

from pharmastock.models.inventory import InventoryAdjustmentType


class BatchReceive(BaseModel):
    product_id: int
    batch_number: str
    quantity: int
    cost_price: Decimal
    selling_price: Decimal
    received_date: date
    expiry_date: date


class BatchResponse(BaseModel):
    id: int
    product_id: int
    purchase_order_id: int | None
    batch_number: str
    quantity_on_hand: int
    cost_price: Decimal
    selling_price: Decimal
    received_date: date
    expiry_date: date
    active: bool

    class Config:
        from_attributes = True


class StockAdjustmentCreate(BaseModel):
    quantity_change: int
    adjustment_type: InventoryAdjustmentType
    reason: str | None = None


class StockAdjustmentResponse(BaseModel):
    id: int
    batch_id: int
    product_id: int
    performed_by_id: int
    adjustment_type: InventoryAdjustmentType
    quantity_change: int
    reason: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class SellingPriceUpdate(BaseModel):
    selling_price: Decimal


class StockLevelResponse(BaseModel):
    product_id: int
    as_of: date
    quantity: int
