# pharmastock/routers/alerts.py

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pharmastock.core.auth import get_current_user
from pharmastock.database import get_db
from pharmastock.schemas.alert import AlertSummary, LowStockAlert, NearExpiryAlert
from pharmastock.services import alerts as alert_service

router = APIRouter(prefix="/alerts", tags=["Alerts"])


@router.get("", response_model=AlertSummary)
def get_alerts(
    as_of: date | None = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return alert_service.all_alerts(db, as_of)


@router.get("/low-stock", response_model=list[LowStockAlert])
def get_low_stock_alerts(
    as_of: date | None = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return alert_service.low_stock_alerts(db, as_of)


@router.get("/near-expiry", response_model=list[NearExpiryAlert])
def get_near_expiry_alerts(
    days: int | None = Query(None, ge=1, le=3650),
    as_of: date | None = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return alert_service.near_expiry_alerts(db, as_of, days)
