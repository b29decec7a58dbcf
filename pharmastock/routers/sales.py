# pharmastock/routers/sales.py

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pharmastock.core.auth import get_current_user
from pharmastock.core.config import settings
from pharmastock.core.rate_limiter import limiter
from pharmastock.database import get_db
from pharmastock.schemas.sale import SaleCreate, SaleResponse
from pharmastock.services import sales as sales_service

logger = logging.getLogger("pharmastock.api")

router = APIRouter(prefix="/sales", tags=["Sales"])


# =========================================================
# CREATE SALE
# =========================================================
@router.post("", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.SALES_RATE_LIMIT)
def create_sale(
    request: Request,
    sale_data: SaleCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    try:
        sale = sales_service.process_sale(db, sale_data, cashier_id=current_user.id)
    except SQLAlchemyError:
        logger.exception("Database error while processing sale")
        raise HTTPException(status_code=500, detail="Unable to complete sale")

    return sales_service.sale_summary(sale)


# =========================================================
# LIST SALES
# =========================================================
@router.get("", response_model=list[SaleResponse])
def list_sales(
    cashier_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    search: str | None = Query(None, max_length=100),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    sales = sales_service.list_sales(
        db,
        cashier_id=cashier_id,
        start=start,
        end=end,
        search=search,
        limit=limit,
        offset=offset,
    )
    return [sales_service.sale_summary(sale) for sale in sales]


# =========================================================
# GET SINGLE SALE
# =========================================================
@router.get("/{sale_id}", response_model=SaleResponse)
def get_sale(
    sale_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return sales_service.sale_summary(sales_service.get_sale(db, sale_id))
