# pharmastock/services/sales.py

"""
Point-of-sale processing.

A sale is allocated against the FEFO ledger line by line and committed as a
single unit: either every deduction and the sale record land, or nothing
does. Products are locked in ascending id order so two carts touching the
same products never wait on each other in opposite orders.
"""
import logging
import secrets
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from pharmastock.core.audit import AuditAction, AuditLog
from pharmastock.core.exceptions import (
    DuplicateReceiptError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from pharmastock.database import transaction
from pharmastock.models.inventory import InventoryBatch
from pharmastock.models.sale_items import SaleTransactionLine
from pharmastock.models.sales import SaleTransaction
from pharmastock.schemas.sale import SaleCreate, SaleLineCreate
from pharmastock.services.batch_ledger import available_batches, deduct, is_expired, today
from pharmastock.services.catalog import get_product, get_user

logger = logging.getLogger("pharmastock.sales")

CENT = Decimal("0.01")


@dataclass
class Allocation:
    product_id: int
    batch: InventoryBatch
    quantity: int
    unit_price: Decimal


def _money(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


# =========================================================
# TOTALS
# =========================================================
def calculate_line_total(line: SaleTransactionLine) -> Decimal:
    return _money(line.calculate_line_total())


def calculate_total_amount(lines: Iterable[SaleTransactionLine], total_discount: Decimal | None) -> Decimal:
    subtotal = sum((calculate_line_total(line) for line in lines), Decimal("0"))
    total = subtotal - (total_discount or Decimal("0"))
    return _money(max(total, Decimal("0")))


def distribute_discount(sale: SaleTransaction) -> list[Decimal]:
    """
    Spread the sale discount over its lines in proportion to line totals.

    Display only: the stored total_amount is never recomputed from these.
    The last line absorbs rounding so the shares add up to the applied discount.
    """
    lines = list(sale.lines)
    totals = [calculate_line_total(line) for line in lines]
    subtotal = sum(totals, Decimal("0"))

    if not lines or not sale.total_discount or subtotal <= 0:
        return [Decimal("0.00") for _ in lines]

    applied = _money(min(Decimal(sale.total_discount), subtotal))
    shares = [_money(applied * total / subtotal) for total in totals[:-1]]
    shares.append(_money(applied - sum(shares, Decimal("0"))))

    return shares


def sale_summary(sale: SaleTransaction) -> dict:
    shares = distribute_discount(sale)

    return {
        "id": sale.id,
        "receipt_number": sale.receipt_number,
        "sold_at": sale.sold_at,
        "cashier_id": sale.cashier_id,
        "total_discount": sale.total_discount,
        "total_amount": sale.total_amount,
        "payment_method": sale.payment_method,
        "prescription_image_url": sale.prescription_image_url,
        "customer_email": sale.customer_email,
        "lines": [
            {
                "line_number": line.line_number,
                "product_id": line.product_id,
                "batch_id": line.batch_id,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "line_total": calculate_line_total(line),
                "discount_share": share,
            }
            for line, share in zip(sale.lines, shares)
        ],
    }


# =========================================================
# ALLOCATION
# =========================================================
def _validate_cart(payload: SaleCreate) -> None:
    if not payload.lines:
        raise ValidationError("Sale must contain at least one line", field="lines")

    for index, line in enumerate(payload.lines, start=1):
        if line.quantity is None or line.quantity <= 0:
            raise ValidationError(f"Line {index}: quantity must be greater than zero", field="quantity")

        if line.unit_price is not None and line.unit_price <= 0:
            raise ValidationError(f"Line {index}: unit price must be greater than zero", field="unit_price")

    if payload.total_discount is not None and payload.total_discount < 0:
        raise ValidationError("Discount cannot be negative", field="total_discount")


def _allocate_explicit(
    db: Session,
    line: SaleLineCreate,
    candidates: list[InventoryBatch],
    reserved: dict[int, int],
    sale_date: date,
) -> list[Allocation]:
    batch = next((b for b in candidates if b.id == line.batch_id), None)

    if batch is None:
        requested = db.get(InventoryBatch, line.batch_id)

        if requested is None:
            raise NotFoundError("InventoryBatch", line.batch_id)

        if requested.product_id != line.product_id:
            raise ValidationError(
                f"Batch {line.batch_id} does not belong to product {line.product_id}",
                field="batch_id",
            )

        if not requested.active or is_expired(requested, sale_date):
            raise ValidationError(f"Batch {line.batch_id} is not available for sale", field="batch_id")

        raise InsufficientStockError(line.product_id, line.quantity, 0, batch_id=line.batch_id)

    remaining = batch.quantity_on_hand - reserved[batch.id]

    if remaining < line.quantity:
        raise InsufficientStockError(
            line.product_id,
            requested=line.quantity,
            available=remaining,
            batch_id=batch.id,
        )

    reserved[batch.id] += line.quantity
    return [Allocation(line.product_id, batch, line.quantity, line.unit_price or batch.selling_price)]


def _allocate_fefo(
    line: SaleLineCreate,
    candidates: list[InventoryBatch],
    reserved: dict[int, int],
) -> list[Allocation]:
    allocations = []
    needed = line.quantity

    for batch in candidates:
        if needed <= 0:
            break

        remaining = batch.quantity_on_hand - reserved[batch.id]
        if remaining <= 0:
            continue

        take = min(remaining, needed)
        reserved[batch.id] += take
        needed -= take

        allocations.append(Allocation(line.product_id, batch, take, line.unit_price or batch.selling_price))

    if needed > 0:
        raise InsufficientStockError(
            line.product_id,
            requested=line.quantity,
            available=line.quantity - needed,
        )

    return allocations


def allocate(db: Session, lines: list[SaleLineCreate], sale_date: date) -> list[Allocation]:
    """
    Plan which batches each cart line draws from without touching the ledger.

    Quantity already planned for earlier lines of the same cart is reserved,
    so two lines for one product never count the same units twice.
    """
    candidates = {}

    for product_id in sorted({line.product_id for line in lines}):
        get_product(db, product_id, require_active=True)
        candidates[product_id] = available_batches(db, product_id, sale_date, lock=True)

    reserved = defaultdict(int)
    allocations = []

    for line in lines:
        if line.batch_id is not None:
            allocations.extend(
                _allocate_explicit(db, line, candidates[line.product_id], reserved, sale_date)
            )
        else:
            allocations.extend(_allocate_fefo(line, candidates[line.product_id], reserved))

    return allocations


# =========================================================
# PROCESS SALE
# =========================================================
def generate_receipt_number(sold_at: datetime) -> str:
    return f"RCPT-{sold_at.strftime('%Y%m%d%H%M%S')}-{secrets.token_hex(3).upper()}"


def process_sale(
    db: Session,
    payload: SaleCreate,
    cashier_id: int,
    sold_at: datetime | None = None,
) -> SaleTransaction:
    _validate_cart(payload)

    if sold_at is None:
        sold_at = datetime.now(timezone.utc)
        sale_date = today()
    else:
        sale_date = sold_at.astimezone(timezone.utc).date() if sold_at.tzinfo else sold_at.date()

    with transaction(db):
        get_user(db, cashier_id, require_active=True)

        receipt_number = (payload.receipt_number or "").strip() or generate_receipt_number(sold_at)

        if db.query(SaleTransaction.id).filter(SaleTransaction.receipt_number == receipt_number).first():
            raise DuplicateReceiptError(receipt_number)

        allocations = allocate(db, payload.lines, sale_date)

        for allocation in allocations:
            deduct(db, allocation.batch.id, allocation.quantity)

        sale = SaleTransaction(
            receipt_number=receipt_number,
            sold_at=sold_at,
            cashier_id=cashier_id,
            total_discount=payload.total_discount,
            payment_method=payload.payment_method,
            prescription_image_url=payload.prescription_image_url,
            customer_email=payload.customer_email,
        )

        for line_number, allocation in enumerate(allocations, start=1):
            sale.lines.append(
                SaleTransactionLine(
                    line_number=line_number,
                    product_id=allocation.product_id,
                    batch_id=allocation.batch.id,
                    quantity=allocation.quantity,
                    unit_price=allocation.unit_price,
                )
            )

        sale.total_amount = calculate_total_amount(sale.lines, payload.total_discount)
        db.add(sale)

        try:
            db.flush()
        except IntegrityError as exc:
            raise DuplicateReceiptError(receipt_number) from exc

    db.refresh(sale)

    logger.info(
        f"Sale {sale.receipt_number} completed by user {cashier_id}: "
        f"{len(allocations)} line(s), total {sale.total_amount}"
    )
    AuditLog.record(
        AuditAction.SALE,
        "sale_transaction",
        sale.id,
        cashier_id,
        {
            "receipt_number": sale.receipt_number,
            "total_amount": sale.total_amount,
            "batches": [{"batch_id": a.batch.id, "quantity": a.quantity} for a in allocations],
        },
    )

    return sale


# =========================================================
# QUERIES
# =========================================================
def get_sale(db: Session, sale_id: int) -> SaleTransaction:
    sale = (
        db.query(SaleTransaction)
        .options(selectinload(SaleTransaction.lines))
        .filter(SaleTransaction.id == sale_id)
        .first()
    )

    if sale is None:
        raise NotFoundError("SaleTransaction", sale_id)

    return sale


def list_sales(
    db: Session,
    cashier_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    search: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[SaleTransaction]:
    q = db.query(SaleTransaction).options(selectinload(SaleTransaction.lines))

    if cashier_id is not None:
        q = q.filter(SaleTransaction.cashier_id == cashier_id)

    if start is not None:
        q = q.filter(SaleTransaction.sold_at >= start)

    if end is not None:
        q = q.filter(SaleTransaction.sold_at <= end)

    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(
            or_(
                SaleTransaction.receipt_number.ilike(pattern),
                SaleTransaction.customer_email.ilike(pattern),
            )
        )

    return (
        q.order_by(SaleTransaction.sold_at.desc(), SaleTransaction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
