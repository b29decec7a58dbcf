# pharmastock/services/batch_ledger.py

"""
FEFO batch ledger.

Every change to InventoryBatch.quantity_on_hand goes through this module.
Deductions are guarded conditional UPDATEs so a batch can never be drawn
below zero, whether or not the backend honours SELECT ... FOR UPDATE.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharmastock.core.audit import AuditAction, AuditLog
from pharmastock.core.exceptions import (
    DuplicateKeyError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from pharmastock.database import transaction
from pharmastock.models.inventory import (
    InventoryAdjustment,
    InventoryAdjustmentType,
    InventoryBatch,
)
from pharmastock.models.products import Product
from pharmastock.schemas.inventory import BatchReceive
from pharmastock.services.catalog import get_product

logger = logging.getLogger("pharmastock.ledger")


def today() -> date:
    """The ledger calendar day. Expiry, FEFO and alerts all measure against it."""
    return datetime.now(timezone.utc).date()


# =========================================================
# RECEIPT
# =========================================================
def receive_batch(
    db: Session,
    product_id: int,
    batch_number: str,
    quantity: int,
    cost_price: Decimal,
    selling_price: Decimal,
    received_date: date,
    expiry_date: date,
    purchase_order_id: int | None = None,
    require_active: bool = True,
) -> InventoryBatch:
    """Add a batch to the ledger. Flushes but leaves the commit to the caller."""
    if quantity is None or quantity <= 0:
        raise ValidationError("Batch quantity must be greater than zero", field="quantity")

    if cost_price is None or Decimal(cost_price) <= 0:
        raise ValidationError("Cost price must be greater than zero", field="cost_price")

    if selling_price is None or Decimal(selling_price) <= 0:
        raise ValidationError("Selling price must be greater than zero", field="selling_price")

    if not batch_number or not batch_number.strip():
        raise ValidationError("Batch number is required", field="batch_number")

    if received_date is None or expiry_date is None:
        raise ValidationError("Received and expiry dates are required", field="expiry_date")

    if expiry_date < received_date:
        raise ValidationError("Expiry date cannot precede received date", field="expiry_date")

    get_product(db, product_id, require_active=require_active)

    batch_number = batch_number.strip()

    existing = (
        db.query(InventoryBatch.id)
        .filter(
            InventoryBatch.product_id == product_id,
            InventoryBatch.batch_number == batch_number,
        )
        .first()
    )

    if existing:
        raise DuplicateKeyError(
            f"Batch {batch_number} already exists for product {product_id}",
            field="batch_number",
        )

    batch = InventoryBatch(
        product_id=product_id,
        purchase_order_id=purchase_order_id,
        batch_number=batch_number,
        quantity_on_hand=quantity,
        cost_price=cost_price,
        selling_price=selling_price,
        received_date=received_date,
        expiry_date=expiry_date,
        active=True,
    )
    db.add(batch)

    try:
        db.flush()
    except IntegrityError as exc:
        raise DuplicateKeyError(
            f"Batch {batch_number} already exists for product {product_id}",
            field="batch_number",
        ) from exc

    return batch


def receive_stock(db: Session, payload: BatchReceive, actor_id: int) -> InventoryBatch:
    """Manual receipt outside a purchase order."""
    with transaction(db):
        batch = receive_batch(
            db,
            product_id=payload.product_id,
            batch_number=payload.batch_number,
            quantity=payload.quantity,
            cost_price=payload.cost_price,
            selling_price=payload.selling_price,
            received_date=payload.received_date,
            expiry_date=payload.expiry_date,
        )

    db.refresh(batch)

    logger.info(f"Received batch {batch.batch_number} ({batch.quantity_on_hand} units) for product {batch.product_id}")
    AuditLog.record(
        AuditAction.RECEIVE,
        "inventory_batch",
        batch.id,
        actor_id,
        {"product_id": batch.product_id, "quantity": batch.quantity_on_hand},
    )

    return batch


# =========================================================
# QUERIES
# =========================================================
def is_expired(batch: InventoryBatch, as_of: date) -> bool:
    return batch.expiry_date < as_of


def is_near_expiry(batch: InventoryBatch, as_of: date, window_days: int) -> bool:
    if is_expired(batch, as_of):
        return False
    return batch.expiry_date <= as_of + timedelta(days=window_days)


def available_batches(
    db: Session,
    product_id: int,
    as_of: date,
    lock: bool = False,
) -> list[InventoryBatch]:
    """
    Batches a sale may draw from, in FEFO order.

    - active, positive quantity, not expired on `as_of`
    - ordered by expiry date, then received date, then id
    - `lock=True` takes row locks where the backend supports them
    """
    q = (
        db.query(InventoryBatch)
        .filter(
            InventoryBatch.product_id == product_id,
            InventoryBatch.active.is_(True),
            InventoryBatch.quantity_on_hand > 0,
            InventoryBatch.expiry_date >= as_of,
        )
        .order_by(
            InventoryBatch.expiry_date.asc(),
            InventoryBatch.received_date.asc(),
            InventoryBatch.id.asc(),
        )
    )

    if lock:
        q = q.with_for_update()

    return q.all()


def total_stock(db: Session, product_id: int, as_of: date) -> int:
    total = (
        db.query(func.coalesce(func.sum(InventoryBatch.quantity_on_hand), 0))
        .filter(
            InventoryBatch.product_id == product_id,
            InventoryBatch.active.is_(True),
            InventoryBatch.expiry_date >= as_of,
        )
        .scalar()
    )
    return int(total)


def get_batch(db: Session, batch_id: int) -> InventoryBatch:
    batch = db.get(InventoryBatch, batch_id)

    if batch is None:
        raise NotFoundError("InventoryBatch", batch_id)

    return batch


def list_batches(
    db: Session,
    product_id: int | None = None,
    active: bool | None = None,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[InventoryBatch]:
    q = db.query(InventoryBatch).join(Product, Product.id == InventoryBatch.product_id)

    if product_id is not None:
        q = q.filter(InventoryBatch.product_id == product_id)

    if active is not None:
        q = q.filter(InventoryBatch.active.is_(active))

    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(
            or_(
                InventoryBatch.batch_number.ilike(pattern),
                Product.name.ilike(pattern),
            )
        )

    return (
        q.order_by(InventoryBatch.expiry_date.asc(), InventoryBatch.id.asc())
        .offset(offset)
        .limit(limit)
        .all()
    )


# =========================================================
# DEDUCTION
# =========================================================
def deduct(db: Session, batch_id: int, quantity: int) -> int:
    """
    Take `quantity` units from a batch and return the new balance.

    Runs as UPDATE ... WHERE quantity_on_hand >= :quantity, so two writers
    racing on the same batch cannot both succeed past the available amount.
    """
    if quantity is None or quantity <= 0:
        raise ValidationError("Deduction quantity must be greater than zero", field="quantity")

    result = db.execute(
        update(InventoryBatch)
        .where(
            InventoryBatch.id == batch_id,
            InventoryBatch.quantity_on_hand >= quantity,
        )
        .values(quantity_on_hand=InventoryBatch.quantity_on_hand - quantity)
        .execution_options(synchronize_session=False)
    )

    batch = db.get(InventoryBatch, batch_id)

    if batch is None:
        raise NotFoundError("InventoryBatch", batch_id)

    db.refresh(batch)

    if result.rowcount == 0:
        logger.warning(
            f"Deduction of {quantity} from batch {batch_id} rejected, "
            f"{batch.quantity_on_hand} on hand"
        )
        raise InsufficientStockError(
            batch.product_id,
            requested=quantity,
            available=batch.quantity_on_hand,
            batch_id=batch_id,
        )

    return batch.quantity_on_hand


# =========================================================
# MANUAL CORRECTIONS
# =========================================================
def adjust_stock(
    db: Session,
    batch_id: int,
    quantity_change: int,
    adjustment_type: InventoryAdjustmentType,
    reason: str | None,
    actor_id: int,
) -> InventoryAdjustment:
    if not quantity_change:
        raise ValidationError("Quantity change cannot be zero", field="quantity_change")

    with transaction(db):
        batch = get_batch(db, batch_id)

        if quantity_change < 0:
            deduct(db, batch_id, -quantity_change)
        else:
            db.execute(
                update(InventoryBatch)
                .where(InventoryBatch.id == batch_id)
                .values(quantity_on_hand=InventoryBatch.quantity_on_hand + quantity_change)
                .execution_options(synchronize_session=False)
            )

        adjustment = InventoryAdjustment(
            batch_id=batch.id,
            product_id=batch.product_id,
            performed_by_id=actor_id,
            adjustment_type=adjustment_type,
            quantity_change=quantity_change,
            reason=reason,
        )
        db.add(adjustment)

    db.refresh(batch)
    db.refresh(adjustment)

    logger.info(
        f"Adjusted batch {batch_id} by {quantity_change} "
        f"({adjustment_type.value}), now {batch.quantity_on_hand}"
    )
    AuditLog.record(
        AuditAction.ADJUST,
        "inventory_batch",
        batch_id,
        actor_id,
        {
            "adjustment_id": adjustment.id,
            "type": adjustment_type.value,
            "quantity_change": quantity_change,
            "reason": reason,
        },
    )

    return adjustment


def set_batch_active(db: Session, batch_id: int, active: bool, actor_id: int) -> InventoryBatch:
    with transaction(db):
        batch = get_batch(db, batch_id)
        batch.active = active

    db.refresh(batch)

    AuditLog.record(
        AuditAction.UPDATE,
        "inventory_batch",
        batch_id,
        actor_id,
        {"active": active},
    )

    return batch


def update_selling_price(
    db: Session,
    batch_id: int,
    selling_price: Decimal,
    actor_id: int,
) -> InventoryBatch:
    if selling_price is None or Decimal(selling_price) <= 0:
        raise ValidationError("Selling price must be greater than zero", field="selling_price")

    with transaction(db):
        batch = get_batch(db, batch_id)
        previous = batch.selling_price
        batch.selling_price = selling_price

    db.refresh(batch)

    AuditLog.record(
        AuditAction.UPDATE,
        "inventory_batch",
        batch_id,
        actor_id,
        {"selling_price": {"from": previous, "to": batch.selling_price}},
    )

    return batch
