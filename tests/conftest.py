import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-pharmastock")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from datetime import date, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402
from itertools import count  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from pharmastock.core.jwt import create_access_token  # noqa: E402
from pharmastock.database import Base, get_db  # noqa: E402
from pharmastock.main import app  # noqa: E402
from pharmastock.models.inventory import InventoryBatch  # noqa: E402
from pharmastock.models.products import Product, ProductCategory  # noqa: E402
from pharmastock.models.suppliers import Supplier  # noqa: E402
from pharmastock.models.users import PharmacyUser, UserRole  # noqa: E402

TODAY = date(2026, 3, 2)

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

_seq = count(1)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_product(db):
    def _make(**overrides):
        n = next(_seq)
        fields = {
            "sku": f"SKU-{n:05d}",
            "name": f"Paracetamol 500mg #{n}",
            "category": ProductCategory.OVER_THE_COUNTER,
            "active": True,
        }
        fields.update(overrides)
        product = Product(**fields)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def make_supplier(db):
    def _make(**overrides):
        fields = {"name": f"Supplier {next(_seq)}", "active": True}
        fields.update(overrides)
        supplier = Supplier(**fields)
        db.add(supplier)
        db.commit()
        db.refresh(supplier)
        return supplier

    return _make


@pytest.fixture
def make_user(db):
    def _make(**overrides):
        n = next(_seq)
        fields = {
            "full_name": f"Staff Member {n}",
            "email": f"staff{n}@pharmacy.test",
            "role": UserRole.PHARMACIST,
            "active": True,
        }
        fields.update(overrides)
        user = PharmacyUser(**fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_batch(db):
    """Insert a batch row directly, bypassing receipt validation."""

    def _make(product, quantity, expiry_date, **overrides):
        fields = {
            "product_id": product.id,
            "batch_number": f"B-{next(_seq)}",
            "quantity_on_hand": quantity,
            "cost_price": Decimal("4.00"),
            "selling_price": Decimal("5.00"),
            "received_date": min(TODAY - timedelta(days=30), expiry_date),
            "expiry_date": expiry_date,
            "active": True,
        }
        fields.update(overrides)
        batch = InventoryBatch(**fields)
        db.add(batch)
        db.commit()
        db.refresh(batch)
        return batch

    return _make


@pytest.fixture
def cashier(make_user):
    return make_user(role=UserRole.SALES_STAFF)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(cashier):
    token = create_access_token({"sub": str(cashier.id)})
    return {"Authorization": f"Bearer {token}"}
