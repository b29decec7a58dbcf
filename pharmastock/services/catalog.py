# pharmastock/services/catalog.py

from sqlalchemy.orm import Session

from pharmastock.core.exceptions import NotFoundError
from pharmastock.models.products import Product
from pharmastock.models.suppliers import Supplier
from pharmastock.models.users import PharmacyUser


def _get(db: Session, model, entity: str, entity_id: int, require_active: bool):
    obj = db.get(model, entity_id)

    if obj is None:
        raise NotFoundError(entity, entity_id)

    # Inactive reference data is treated as absent wherever activity is required
    if require_active and not obj.active:
        raise NotFoundError(entity, entity_id, message=f"{entity} {entity_id} is inactive")

    return obj


def get_product(db: Session, product_id: int, require_active: bool = False) -> Product:
    return _get(db, Product, "Product", product_id, require_active)


def get_supplier(db: Session, supplier_id: int, require_active: bool = False) -> Supplier:
    return _get(db, Supplier, "Supplier", supplier_id, require_active)


def get_user(db: Session, user_id: int, require_active: bool = False) -> PharmacyUser:
    return _get(db, PharmacyUser, "User", user_id, require_active)
