import threading
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from pharmastock.core.exceptions import InsufficientStockError, PharmacyError
from pharmastock.database import Base
from pharmastock.models.inventory import InventoryBatch
from pharmastock.models.products import Product, ProductCategory
from pharmastock.models.purchase_orders import PurchaseOrder, PurchaseOrderStatus
from pharmastock.models.sale_items import SaleTransactionLine
from pharmastock.models.sales import SaleTransaction
from pharmastock.models.suppliers import Supplier
from pharmastock.models.users import PharmacyUser, UserRole
from pharmastock.schemas.sale import SaleCreate, SaleLineCreate
from pharmastock.services import batch_ledger
from pharmastock.services import purchase_orders as po_service
from pharmastock.services import sales as sales_service

from conftest import TODAY


@pytest.fixture
def file_sessions(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'concurrency.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def _run_in_threads(worker, count):
    threads = [threading.Thread(target=worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)


def test_concurrent_deductions_never_overdraw(file_sessions):
    with file_sessions() as db:
        product = Product(sku="CONC-1", name="Loratadine 10mg", category=ProductCategory.OVER_THE_COUNTER)
        db.add(product)
        db.flush()
        batch = InventoryBatch(
            product_id=product.id,
            batch_number="CONC-L1",
            quantity_on_hand=10,
            cost_price=Decimal("1.00"),
            selling_price=Decimal("1.50"),
            received_date=TODAY,
            expiry_date=TODAY + timedelta(days=365),
        )
        db.add(batch)
        db.commit()
        batch_id = batch.id

    outcomes = []
    lock = threading.Lock()

    def worker():
        with file_sessions() as session:
            try:
                batch_ledger.deduct(session, batch_id, 1)
                session.commit()
                result = "ok"
            except InsufficientStockError:
                session.rollback()
                result = "short"
            with lock:
                outcomes.append(result)

    _run_in_threads(worker, 20)

    assert outcomes.count("ok") == 10
    assert outcomes.count("short") == 10

    with file_sessions() as db:
        assert db.get(InventoryBatch, batch_id).quantity_on_hand == 0


def test_concurrent_receive_books_batches_once(file_sessions):
    with file_sessions() as db:
        supplier = Supplier(name="Concurrent Supplier")
        product = Product(sku="CONC-2", name="Metformin 500mg", category=ProductCategory.PRESCRIPTION)
        db.add_all([supplier, product])
        db.flush()

        order = PurchaseOrder(
            order_code="PO-CONC",
            supplier_id=supplier.id,
            status=PurchaseOrderStatus.ORDERED,
            order_date=TODAY,
        )
        order.add_line(product.id, 25, Decimal("0.40"))
        order.add_line(product.id, 15, Decimal("0.45"))
        db.add(order)
        db.commit()
        order_id = order.id

    outcomes = []
    lock = threading.Lock()

    def worker():
        with file_sessions() as session:
            try:
                po_service.receive_order(session, order_id, actor_id=None, received_date=TODAY)
                result = "ok"
            except (PharmacyError, SQLAlchemyError):
                result = "rejected"
            with lock:
                outcomes.append(result)

    _run_in_threads(worker, 4)

    assert outcomes.count("ok") == 1
    assert outcomes.count("rejected") == 3

    with file_sessions() as db:
        batches = db.query(InventoryBatch).filter(InventoryBatch.purchase_order_id == order_id).all()
        assert sorted(b.quantity_on_hand for b in batches) == [15, 25]
        assert db.get(PurchaseOrder, order_id).status == PurchaseOrderStatus.RECEIVED


def test_concurrent_sales_share_fefo_batches_without_overdrawing(file_sessions):
    today = batch_ledger.today()

    with file_sessions() as db:
        cashier = PharmacyUser(
            full_name="Till Two",
            email="till.two@pharmacy.test",
            role=UserRole.SALES_STAFF,
        )
        product = Product(sku="CONC-3", name="Ibuprofen 200mg", category=ProductCategory.OVER_THE_COUNTER)
        db.add_all([cashier, product])
        db.flush()

        for batch_number, quantity, shelf_days in (("CONC-E1", 5, 20), ("CONC-E2", 6, 200)):
            db.add(
                InventoryBatch(
                    product_id=product.id,
                    batch_number=batch_number,
                    quantity_on_hand=quantity,
                    cost_price=Decimal("0.20"),
                    selling_price=Decimal("0.35"),
                    received_date=today - timedelta(days=10),
                    expiry_date=today + timedelta(days=shelf_days),
                )
            )
        db.commit()
        cashier_id, product_id = cashier.id, product.id

    outcomes = []
    lock = threading.Lock()

    def worker():
        payload = SaleCreate(lines=[SaleLineCreate(product_id=product_id, quantity=2)])
        with file_sessions() as session:
            try:
                sale = sales_service.process_sale(session, payload, cashier_id=cashier_id)
                result = ("ok", sale.id)
            except (PharmacyError, SQLAlchemyError):
                result = ("rejected", None)
            with lock:
                outcomes.append(result)

    _run_in_threads(worker, 8)

    sold_ids = sorted(sale_id for outcome, sale_id in outcomes if outcome == "ok")
    assert len(outcomes) == 8
    assert 1 <= len(sold_ids) <= 5

    with file_sessions() as db:
        batches = db.query(InventoryBatch).filter(InventoryBatch.product_id == product_id).all()
        remaining = sum(b.quantity_on_hand for b in batches)
        sold = sum(quantity for (quantity,) in db.query(SaleTransactionLine.quantity).all())

        assert all(b.quantity_on_hand >= 0 for b in batches)
        assert sold == 11 - remaining
        assert sold == 2 * len(sold_ids)
        assert sorted(sale_id for (sale_id,) in db.query(SaleTransaction.id).all()) == sold_ids
