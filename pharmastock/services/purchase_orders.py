# pharmastock/services/purchase_orders.py

"""
Purchase order lifecycle.

    DRAFT --send--> ORDERED --receive--> RECEIVED
      |                |
      +----cancel------+----> CANCELLED

RECEIVED and CANCELLED are terminal. Lines can only change while DRAFT.
Every status change is a compare-and-set UPDATE on the order row, so of two
concurrent requests for the same transition exactly one wins.
"""
import enum
import logging
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from pharmastock.core.audit import AuditAction, AuditLog
from pharmastock.core.config import check_batch_number_template, settings
from pharmastock.core.exceptions import (
    DuplicateKeyError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from pharmastock.database import transaction
from pharmastock.models.inventory import InventoryBatch
from pharmastock.models.purchase_orders import (
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderStatus,
)
from pharmastock.models.suppliers import Supplier
from pharmastock.schemas.purchase_order import PurchaseOrderCreate, PurchaseOrderLineCreate
from pharmastock.services.batch_ledger import receive_batch, today
from pharmastock.services.catalog import get_product, get_supplier

logger = logging.getLogger("pharmastock.purchase_orders")

CENT = Decimal("0.01")


class PurchaseOrderEvent(str, enum.Enum):
    SEND = "send"
    RECEIVE = "receive"
    CANCEL = "cancel"
    UPDATE_LINES = "update"


_TRANSITIONS = {
    (PurchaseOrderStatus.DRAFT, PurchaseOrderEvent.SEND): PurchaseOrderStatus.ORDERED,
    (PurchaseOrderStatus.DRAFT, PurchaseOrderEvent.CANCEL): PurchaseOrderStatus.CANCELLED,
    (PurchaseOrderStatus.DRAFT, PurchaseOrderEvent.UPDATE_LINES): PurchaseOrderStatus.DRAFT,
    (PurchaseOrderStatus.ORDERED, PurchaseOrderEvent.RECEIVE): PurchaseOrderStatus.RECEIVED,
    (PurchaseOrderStatus.ORDERED, PurchaseOrderEvent.CANCEL): PurchaseOrderStatus.CANCELLED,
}


def transition(current: PurchaseOrderStatus, event: PurchaseOrderEvent) -> PurchaseOrderStatus:
    target = _TRANSITIONS.get((current, event))

    if target is None:
        raise InvalidStateTransitionError(current, event.value)

    return target


def can_update(status: PurchaseOrderStatus) -> bool:
    return status == PurchaseOrderStatus.DRAFT


def can_delete(status: PurchaseOrderStatus) -> bool:
    return status == PurchaseOrderStatus.DRAFT


class BatchGenerationPolicy(BaseModel):
    """How receiving an order turns its lines into inventory batches."""

    batch_number_template: str = Field(default_factory=lambda: settings.BATCH_NUMBER_TEMPLATE)
    markup_percent: Decimal = Field(default_factory=lambda: settings.DEFAULT_MARKUP_PERCENT, ge=0)
    shelf_life_days: int = Field(default_factory=lambda: settings.DEFAULT_SHELF_LIFE_DAYS, ge=0)

    @field_validator("batch_number_template")
    @classmethod
    def validate_template(cls, value: str) -> str:
        return check_batch_number_template(value)

    def batch_number(self, order: PurchaseOrder, line: PurchaseOrderLine) -> str:
        return self.batch_number_template.format(
            order_code=order.order_code,
            line_number=line.line_number,
        )

    def selling_price(self, unit_cost: Decimal) -> Decimal:
        factor = Decimal(1) + Decimal(self.markup_percent) / Decimal(100)
        return (Decimal(unit_cost) * factor).quantize(CENT, rounding=ROUND_HALF_UP)

    def expiry_date(self, received_date: date) -> date:
        return received_date + timedelta(days=self.shelf_life_days)


# =========================================================
# HELPERS
# =========================================================
def _validate_lines(db: Session, lines: Iterable[PurchaseOrderLineCreate]) -> None:
    for index, line in enumerate(lines, start=1):
        if line.quantity is None or line.quantity <= 0:
            raise ValidationError(f"Line {index}: quantity must be greater than zero", field="quantity")

        if line.unit_cost is None or line.unit_cost <= 0:
            raise ValidationError(f"Line {index}: unit cost must be greater than zero", field="unit_cost")

        get_product(db, line.product_id, require_active=True)


def _generate_order_code(db: Session, order_date: date) -> str:
    """Pattern: POYYYYMMDDNNN"""
    prefix = f"PO{order_date.strftime('%Y%m%d')}"

    codes = (
        db.query(PurchaseOrder.order_code)
        .filter(PurchaseOrder.order_code.like(f"{prefix}%"))
        .all()
    )
    taken = [int(code[len(prefix):]) for (code,) in codes if code[len(prefix):].isdigit()]

    return f"{prefix}{max(taken, default=0) + 1:03d}"


def _compare_and_set(
    db: Session,
    order: PurchaseOrder,
    event: PurchaseOrderEvent,
    **values,
) -> PurchaseOrderStatus:
    """Move `order` along `event` only if nobody changed its status since it was read."""
    expected = order.status
    target = transition(expected, event)

    result = db.execute(
        update(PurchaseOrder)
        .where(PurchaseOrder.id == order.id, PurchaseOrder.status == expected)
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        db.refresh(order)
        raise InvalidStateTransitionError(order.status, event.value)

    db.refresh(order)
    return target


# =========================================================
# QUERIES
# =========================================================
def get_order(db: Session, order_id: int) -> PurchaseOrder:
    order = (
        db.query(PurchaseOrder)
        .options(selectinload(PurchaseOrder.lines))
        .filter(PurchaseOrder.id == order_id)
        .first()
    )

    if order is None:
        raise NotFoundError("PurchaseOrder", order_id)

    return order


def list_orders(
    db: Session,
    status: PurchaseOrderStatus | None = None,
    supplier_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[PurchaseOrder]:
    q = (
        db.query(PurchaseOrder)
        .join(Supplier, Supplier.id == PurchaseOrder.supplier_id)
        .options(selectinload(PurchaseOrder.lines))
    )

    if status is not None:
        q = q.filter(PurchaseOrder.status == status)

    if supplier_id is not None:
        q = q.filter(PurchaseOrder.supplier_id == supplier_id)

    if start_date is not None:
        q = q.filter(PurchaseOrder.order_date >= start_date)

    if end_date is not None:
        q = q.filter(PurchaseOrder.order_date <= end_date)

    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(
            or_(
                PurchaseOrder.order_code.ilike(pattern),
                Supplier.name.ilike(pattern),
            )
        )

    return (
        q.order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


# =========================================================
# OPERATIONS
# =========================================================
def create_order(db: Session, payload: PurchaseOrderCreate, actor_id: int | None) -> PurchaseOrder:
    if payload.expected_date is not None and payload.expected_date < payload.order_date:
        raise ValidationError("Expected date cannot precede order date", field="expected_date")

    with transaction(db):
        get_supplier(db, payload.supplier_id, require_active=True)
        _validate_lines(db, payload.lines)

        order_code = (payload.order_code or "").strip() or _generate_order_code(db, payload.order_date)

        if db.query(PurchaseOrder.id).filter(PurchaseOrder.order_code == order_code).first():
            raise DuplicateKeyError(f"Order code {order_code} already exists", field="order_code")

        order = PurchaseOrder(
            order_code=order_code,
            supplier_id=payload.supplier_id,
            status=PurchaseOrderStatus.DRAFT,
            order_date=payload.order_date,
            expected_date=payload.expected_date,
            created_by_id=actor_id,
        )

        for line in payload.lines:
            order.add_line(line.product_id, line.quantity, line.unit_cost)

        db.add(order)

        try:
            db.flush()
        except IntegrityError as exc:
            raise DuplicateKeyError(f"Order code {order_code} already exists", field="order_code") from exc

    db.refresh(order)

    logger.info(f"Purchase order {order.order_code} created with {len(order.lines)} line(s)")
    AuditLog.record(
        AuditAction.CREATE,
        "purchase_order",
        order.id,
        actor_id,
        {"order_code": order.order_code, "supplier_id": order.supplier_id},
    )

    return order


def update_order_lines(
    db: Session,
    order_id: int,
    lines: list[PurchaseOrderLineCreate],
    actor_id: int | None,
) -> PurchaseOrder:
    with transaction(db):
        order = get_order(db, order_id)

        if not can_update(order.status):
            raise InvalidStateTransitionError(order.status, PurchaseOrderEvent.UPDATE_LINES.value)

        _validate_lines(db, lines)
        _compare_and_set(db, order, PurchaseOrderEvent.UPDATE_LINES)

        order.lines.clear()
        db.flush()

        for line in lines:
            order.add_line(line.product_id, line.quantity, line.unit_cost)

    db.refresh(order)

    AuditLog.record(
        AuditAction.UPDATE,
        "purchase_order",
        order.id,
        actor_id,
        {"lines": len(order.lines)},
    )

    return order


def send_order(
    db: Session,
    order_id: int,
    expected_date: date | None,
    actor_id: int | None,
) -> PurchaseOrder:
    with transaction(db):
        order = get_order(db, order_id)
        transition(order.status, PurchaseOrderEvent.SEND)

        if not order.lines:
            raise ValidationError("Cannot send a purchase order without lines", field="lines")

        expected_date = expected_date or order.expected_date

        if expected_date is not None and expected_date < order.order_date:
            raise ValidationError("Expected date cannot precede order date", field="expected_date")

        _compare_and_set(db, order, PurchaseOrderEvent.SEND, expected_date=expected_date)

    logger.info(f"Purchase order {order.order_code} sent to supplier {order.supplier_id}")
    AuditLog.record(
        AuditAction.SEND,
        "purchase_order",
        order.id,
        actor_id,
        {"expected_date": order.expected_date},
    )

    return order


def receive_order(
    db: Session,
    order_id: int,
    actor_id: int | None,
    received_date: date | None = None,
    policy: BatchGenerationPolicy | None = None,
) -> tuple[PurchaseOrder, list[InventoryBatch]]:
    """
    Mark an ORDERED purchase order as RECEIVED and book one batch per line.

    The status flip and the batches commit together; a second receive of the
    same order fails on the status check and creates nothing.
    """
    policy = policy or BatchGenerationPolicy()
    received_date = received_date or today()

    with transaction(db):
        order = get_order(db, order_id)
        _compare_and_set(db, order, PurchaseOrderEvent.RECEIVE)

        batches = [
            receive_batch(
                db,
                product_id=line.product_id,
                batch_number=policy.batch_number(order, line),
                quantity=line.quantity,
                cost_price=line.unit_cost,
                selling_price=policy.selling_price(line.unit_cost),
                received_date=received_date,
                expiry_date=policy.expiry_date(received_date),
                purchase_order_id=order.id,
                require_active=False,
            )
            for line in order.lines
        ]

    logger.info(f"Purchase order {order.order_code} received, {len(batches)} batch(es) booked")
    AuditLog.record(
        AuditAction.RECEIVE,
        "purchase_order",
        order.id,
        actor_id,
        {"batches": [batch.id for batch in batches], "received_date": received_date},
    )

    return order, batches


def cancel_order(db: Session, order_id: int, actor_id: int | None) -> PurchaseOrder:
    with transaction(db):
        order = get_order(db, order_id)
        previous = order.status
        _compare_and_set(db, order, PurchaseOrderEvent.CANCEL)

    logger.info(f"Purchase order {order.order_code} cancelled from {previous.value}")
    AuditLog.record(
        AuditAction.CANCEL,
        "purchase_order",
        order.id,
        actor_id,
        {"from": previous.value},
    )

    return order


def delete_order(db: Session, order_id: int, actor_id: int | None) -> None:
    with transaction(db):
        order = get_order(db, order_id)

        if not can_delete(order.status):
            raise InvalidStateTransitionError(order.status, "delete")

        # Lock the row and confirm it is still DRAFT before removing it
        _compare_and_set(db, order, PurchaseOrderEvent.UPDATE_LINES)
        order_code = order.order_code
        db.delete(order)

    logger.info(f"Purchase order {order_code} deleted")
    AuditLog.record(
        AuditAction.DELETE,
        "purchase_order",
        order_id,
        actor_id,
        {"order_code": order_code},
    )
