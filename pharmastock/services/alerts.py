# pharmastock/services/alerts.py

"""
Read-only stock alerts, derived from the ledger on every call.
"""
from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from pharmastock.core.config import settings
from pharmastock.models.inventory import InventoryBatch
from pharmastock.models.products import Product
from pharmastock.schemas.alert import AlertSummary, LowStockAlert, NearExpiryAlert
from pharmastock.services import batch_ledger


def _stock_by_product(db: Session, today: date) -> dict[int, int]:
    rows = (
        db.query(InventoryBatch.product_id, func.sum(InventoryBatch.quantity_on_hand))
        .filter(
            InventoryBatch.active.is_(True),
            InventoryBatch.expiry_date >= today,
        )
        .group_by(InventoryBatch.product_id)
        .all()
    )
    return {product_id: int(total or 0) for product_id, total in rows}


def low_stock_alerts(db: Session, today: date | None = None) -> list[LowStockAlert]:
    today = today or batch_ledger.today()
    stock = _stock_by_product(db, today)

    products = (
        db.query(Product)
        .filter(Product.active.is_(True))
        .order_by(Product.id.asc())
        .all()
    )

    alerts = []

    for product in products:
        threshold = product.low_stock_threshold
        if threshold is None:
            continue

        current = stock.get(product.id, 0)
        if current > threshold:
            continue

        alerts.append(
            LowStockAlert(
                product_id=product.id,
                sku=product.sku,
                product_name=product.name,
                current_stock=current,
                threshold=threshold,
                severity="critical" if current == 0 else "warning",
            )
        )

    return alerts


def near_expiry_alerts(
    db: Session,
    today: date | None = None,
    days: int | None = None,
) -> list[NearExpiryAlert]:
    """Alert on sellable batches whose expiry falls inside the product's window (or `days`)."""
    today = today or batch_ledger.today()

    rows = (
        db.query(InventoryBatch, Product)
        .join(Product, Product.id == InventoryBatch.product_id)
        .filter(
            Product.active.is_(True),
            InventoryBatch.active.is_(True),
            InventoryBatch.quantity_on_hand > 0,
            InventoryBatch.expiry_date >= today,
        )
        .order_by(InventoryBatch.expiry_date.asc(), InventoryBatch.id.asc())
        .all()
    )

    alerts = []

    for batch, product in rows:
        window = days if days is not None else product.expiry_alert_days
        if window is None or window <= 0:
            continue

        days_until_expiry = (batch.expiry_date - today).days
        if days_until_expiry > window:
            continue

        alerts.append(
            NearExpiryAlert(
                batch_id=batch.id,
                product_id=product.id,
                product_name=product.name,
                batch_number=batch.batch_number,
                quantity_on_hand=batch.quantity_on_hand,
                expiry_date=batch.expiry_date,
                days_until_expiry=days_until_expiry,
                severity=(
                    "critical"
                    if days_until_expiry <= settings.NEAR_EXPIRY_CRITICAL_DAYS
                    else "warning"
                ),
            )
        )

    return alerts


def all_alerts(db: Session, today: date | None = None) -> AlertSummary:
    today = today or batch_ledger.today()

    return AlertSummary(
        as_of=today,
        low_stock=low_stock_alerts(db, today),
        near_expiry=near_expiry_alerts(db, today),
    )
