# pharmastock/schemas/sale.py

from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, EmailStr

from pharmastock.models.sales import PaymentMethod


class SaleLineCreate(BaseModel):
    product_id: int
    quantity: int
    unit_price: Decimal | None = None
    batch_id: int | None = None


class SaleCreate(BaseModel):
    lines: List[SaleLineCreate]
    receipt_number: str | None = None
    total_discount: Decimal | None = None
    payment_method: PaymentMethod | None = None
    prescription_image_url: str | None = None
    customer_email: EmailStr | None = None


class SaleLineResponse(BaseModel):
    line_number: int
    product_id: int
    batch_id: int | None
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    discount_share: Decimal


class SaleResponse(BaseModel):
    id: int
    receipt_number: str
    sold_at: datetime
    cashier_id: int
    total_discount: Decimal | None
    total_amount: Decimal
    payment_method: PaymentMethod | None
    prescription_image_url: str | None
    customer_email: str | None
    lines: List[SaleLineResponse]
