# pharmastock/schemas/alert.py

from datetime import date
from typing import List, Literal

from pydantic import BaseModel

Severity = Literal["warning", "critical"]


class LowStockAlert(BaseModel):
    product_id: int
    sku: str
    product_name: str
    current_stock: int
    threshold: int
    severity: Severity


class NearExpiryAlert(BaseModel):
    batch_id: int
    product_id: int
    product_name: str
    batch_number: str
    quantity_on_hand: int
    expiry_date: date
    days_until_expiry: int
    severity: Severity


class AlertSummary(BaseModel):
    as_of: date
    low_stock: List[LowStockAlert]
    near_expiry: List[NearExpiryAlert]
