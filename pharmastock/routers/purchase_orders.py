# pharmastock/routers/purchase_orders.py

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pharmastock.core.auth import get_current_user
from pharmastock.database import get_db
from pharmastock.models.purchase_orders import PurchaseOrderStatus
from pharmastock.schemas.inventory import BatchResponse
from pharmastock.schemas.purchase_order import (
    PurchaseOrderCreate,
    PurchaseOrderLinesUpdate,
    PurchaseOrderReceive,
    PurchaseOrderResponse,
    PurchaseOrderSend,
)
from pharmastock.services import purchase_orders as po_service

logger = logging.getLogger("pharmastock.api")

router = APIRouter(prefix="/purchase-orders", tags=["Purchase Orders"])


def _storage_error(action: str) -> HTTPException:
    logger.exception(f"Database error while trying to {action}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Unable to {action}",
    )


# =========================================================
# CREATE / EDIT
# =========================================================
@router.post("", response_model=PurchaseOrderResponse, status_code=status.HTTP_201_CREATED)
def create_purchase_order(
    order_data: PurchaseOrderCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    try:
        return po_service.create_order(db, order_data, actor_id=current_user.id)
    except SQLAlchemyError:
        raise _storage_error("create purchase order")


@router.put("/{order_id}/lines", response_model=PurchaseOrderResponse)
def update_purchase_order_lines(
    order_id: int,
    lines_data: PurchaseOrderLinesUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    try:
        return po_service.update_order_lines(db, order_id, lines_data.lines, actor_id=current_user.id)
    except SQLAlchemyError:
        raise _storage_error("update purchase order")


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_purchase_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    try:
        po_service.delete_order(db, order_id, actor_id=current_user.id)
    except SQLAlchemyError:
        raise _storage_error("delete purchase order")


# =========================================================
# LIFECYCLE
# =========================================================
@router.post("/{order_id}/send", response_model=PurchaseOrderResponse)
def send_purchase_order(
    order_id: int,
    send_data: PurchaseOrderSend | None = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    expected_date = send_data.expected_date if send_data else None

    try:
        return po_service.send_order(db, order_id, expected_date, actor_id=current_user.id)
    except SQLAlchemyError:
        raise _storage_error("send purchase order")


@router.post("/{order_id}/receive", response_model=list[BatchResponse])
def receive_purchase_order(
    order_id: int,
    receive_data: PurchaseOrderReceive | None = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    receive_data = receive_data or PurchaseOrderReceive()

    overrides = {
        key: value
        for key, value in {
            "markup_percent": receive_data.markup_percent,
            "shelf_life_days": receive_data.shelf_life_days,
        }.items()
        if value is not None
    }

    try:
        _, batches = po_service.receive_order(
            db,
            order_id,
            actor_id=current_user.id,
            received_date=receive_data.received_date,
            policy=po_service.BatchGenerationPolicy(**overrides),
        )
    except SQLAlchemyError:
        raise _storage_error("receive purchase order")

    return batches


@router.post("/{order_id}/cancel", response_model=PurchaseOrderResponse)
def cancel_purchase_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    try:
        return po_service.cancel_order(db, order_id, actor_id=current_user.id)
    except SQLAlchemyError:
        raise _storage_error("cancel purchase order")


# =========================================================
# READ
# =========================================================
@router.get("", response_model=list[PurchaseOrderResponse])
def list_purchase_orders(
    status_filter: PurchaseOrderStatus | None = Query(None, alias="status"),
    supplier_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    search: str | None = Query(None, max_length=100),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return po_service.list_orders(
        db,
        status=status_filter,
        supplier_id=supplier_id,
        start_date=start_date,
        end_date=end_date,
        search=search,
        limit=limit,
        offset=offset,
    )


@router.get("/{order_id}", response_model=PurchaseOrderResponse)
def get_purchase_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return po_service.get_order(db, order_id)
