# pharmastock/routers/inventory.py

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pharmastock.core.auth import get_current_user
from pharmastock.database import get_db
from pharmastock.schemas.inventory import (
    BatchReceive,
    BatchResponse,
    SellingPriceUpdate,
    StockAdjustmentCreate,
    StockAdjustmentResponse,
    StockLevelResponse,
)
from pharmastock.services import batch_ledger
from pharmastock.services.catalog import get_product

logger = logging.getLogger("pharmastock.api")

router = APIRouter(
    prefix="/inventory",
    tags=["Inventory"],
)


def _storage_error(action: str) -> HTTPException:
    logger.exception(f"Database error while trying to {action}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Unable to {action}",
    )


@router.post("/batches", response_model=BatchResponse, status_code=status.HTTP_201_CREATED)
def receive_stock(
    batch_data: BatchReceive,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    try:
        return batch_ledger.receive_stock(db, batch_data, actor_id=current_user.id)
    except SQLAlchemyError:
        raise _storage_error("receive stock")


@router.get("/batches", response_model=list[BatchResponse])
def list_batches(
    product_id: int | None = None,
    active: bool | None = None,
    search: str | None = Query(None, max_length=100),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return batch_ledger.list_batches(
        db,
        product_id=product_id,
        active=active,
        search=search,
        limit=limit,
        offset=offset,
    )


@router.get("/batches/{batch_id}", response_model=BatchResponse)
def get_batch(
    batch_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return batch_ledger.get_batch(db, batch_id)


@router.post(
    "/batches/{batch_id}/adjust",
    response_model=StockAdjustmentResponse,
    status_code=status.HTTP_201_CREATED,
)
def adjust_stock(
    batch_id: int,
    adjustment: StockAdjustmentCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    try:
        return batch_ledger.adjust_stock(
            db,
            batch_id,
            quantity_change=adjustment.quantity_change,
            adjustment_type=adjustment.adjustment_type,
            reason=adjustment.reason,
            actor_id=current_user.id,
        )
    except SQLAlchemyError:
        raise _storage_error("adjust stock")


@router.post("/batches/{batch_id}/deactivate", response_model=BatchResponse)
def deactivate_batch(
    batch_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    try:
        return batch_ledger.set_batch_active(db, batch_id, False, actor_id=current_user.id)
    except SQLAlchemyError:
        raise _storage_error("deactivate batch")


@router.post("/batches/{batch_id}/activate", response_model=BatchResponse)
def activate_batch(
    batch_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    try:
        return batch_ledger.set_batch_active(db, batch_id, True, actor_id=current_user.id)
    except SQLAlchemyError:
        raise _storage_error("activate batch")


@router.put("/batches/{batch_id}/selling-price", response_model=BatchResponse)
def update_selling_price(
    batch_id: int,
    price_data: SellingPriceUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    try:
        return batch_ledger.update_selling_price(
            db,
            batch_id,
            price_data.selling_price,
            actor_id=current_user.id,
        )
    except SQLAlchemyError:
        raise _storage_error("update selling price")


@router.get("/products/{product_id}/available", response_model=list[BatchResponse])
def available_batches(
    product_id: int,
    as_of: date | None = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    get_product(db, product_id)
    return batch_ledger.available_batches(db, product_id, as_of or batch_ledger.today())


@router.get("/products/{product_id}/stock", response_model=StockLevelResponse)
def stock_level(
    product_id: int,
    as_of: date | None = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    get_product(db, product_id)
    as_of = as_of or batch_ledger.today()

    return StockLevelResponse(
        product_id=product_id,
        as_of=as_of,
        quantity=batch_ledger.total_stock(db, product_id, as_of),
    )
