# pharmastock/schemas/purchase_order.py

from datetime import date, datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field

from pharmastock.models.purchase_orders import PurchaseOrderStatus


class PurchaseOrderLineCreate(BaseModel):
    product_id: int
    quantity: int
    unit_cost: Decimal


class PurchaseOrderCreate(BaseModel):
    supplier_id: int
    order_date: date
    order_code: str | None = None
    expected_date: date | None = None
    lines: List[PurchaseOrderLineCreate] = []


class PurchaseOrderLinesUpdate(BaseModel):
    lines: List[PurchaseOrderLineCreate]


class PurchaseOrderSend(BaseModel):
    expected_date: date | None = None


class PurchaseOrderReceive(BaseModel):
    received_date: date | None = None
    markup_percent: Decimal | None = Field(None, ge=0)
    shelf_life_days: int | None = Field(None, ge=0)


class PurchaseOrderLineResponse(BaseModel):
    id: int
    line_number: int
    product_id: int
    quantity: int
    unit_cost: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True


class PurchaseOrderResponse(BaseModel):
    id: int
    order_code: str
    supplier_id: int
    status: PurchaseOrderStatus
    order_date: date
    expected_date: date | None
    created_at: datetime
    total_cost: Decimal
    lines: List[PurchaseOrderLineResponse]

    class Config:
        from_attributes = True
