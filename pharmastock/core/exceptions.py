# pharmastock/core/exceptions.py

"""
Domain errors raised by the inventory and order services.

Services raise these; main.py maps them to HTTP responses through
register_exception_handlers(). Every one of them aborts the surrounding
transaction, so ledger and order state are left unchanged.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger("pharmastock.errors")


class PharmacyError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "pharmacy_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.error}


class ValidationError(PharmacyError):
    """Malformed or missing field, non-positive amount, date ordering violation."""

    error = "validation_error"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["field"] = self.field
        return body


class DuplicateKeyError(ValidationError):
    """SKU, order code, receipt number or per-product batch number collision."""

    status_code = status.HTTP_409_CONFLICT
    error = "duplicate_key"


class DuplicateReceiptError(DuplicateKeyError):
    error = "duplicate_receipt"

    def __init__(self, receipt_number: str):
        super().__init__(
            f"Sale with receipt number {receipt_number} already exists",
            field="receipt_number",
        )
        self.receipt_number = receipt_number


class NotFoundError(PharmacyError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"

    def __init__(self, entity: str, entity_id, message: str | None = None):
        super().__init__(message or f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id

    def to_dict(self) -> dict:
        body = super().to_dict()
        body.update({"entity": self.entity, "id": self.entity_id})
        return body


class InvalidStateTransitionError(PharmacyError):
    status_code = status.HTTP_409_CONFLICT
    error = "invalid_state_transition"

    def __init__(self, current_state, requested: str):
        current = getattr(current_state, "value", current_state)
        super().__init__(f"Cannot {requested} a purchase order in state {current}")
        self.current_state = current
        self.requested = requested

    def to_dict(self) -> dict:
        body = super().to_dict()
        body.update({"current_state": self.current_state, "requested": self.requested})
        return body


class InsufficientStockError(PharmacyError):
    error = "insufficient_stock"

    def __init__(
        self,
        product_id: int | None,
        requested: int,
        available: int,
        batch_id: int | None = None,
    ):
        target = f"batch {batch_id}" if batch_id is not None else f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {target}: requested {requested}, available {available}"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.batch_id = batch_id

    def to_dict(self) -> dict:
        body = super().to_dict()
        body.update(
            {
                "product_id": self.product_id,
                "batch_id": self.batch_id,
                "requested": self.requested,
                "available": self.available,
            }
        )
        return body


async def pharmacy_error_handler(request: Request, exc: PharmacyError) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PharmacyError, pharmacy_error_handler)
