from datetime import timedelta

from sqlalchemy.exc import OperationalError

from pharmastock.core.jwt import create_access_token, staff_id_from_token
from pharmastock.services import batch_ledger


def _today():
    return batch_ledger.today()


def test_health_check(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["message"] == "Pharmacy Inventory API is running"


# =========================================================
# AUTH
# =========================================================
def test_requests_require_a_valid_token(client, make_user):
    assert client.get("/sales").status_code == 401

    bogus = {"Authorization": "Bearer not-a-token"}
    assert client.get("/sales", headers=bogus).status_code == 401

    unknown = {"Authorization": f"Bearer {create_access_token({'sub': '99999'})}"}
    assert client.get("/alerts", headers=unknown).status_code == 401

    inactive = make_user(active=False)
    token = create_access_token({"sub": str(inactive.id)})
    response = client.get("/alerts", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


# =========================================================
# PURCHASE ORDER -> SALE
# =========================================================
def test_purchase_to_sale_flow(client, auth_headers, cashier, make_supplier, make_product):
    supplier = make_supplier()
    product = make_product(reorder_level=30)

    response = client.post(
        "/purchase-orders",
        json={
            "supplier_id": supplier.id,
            "order_date": _today().isoformat(),
            "order_code": "PO-API-1",
            "lines": [{"product_id": product.id, "quantity": 40, "unit_cost": "2.50"}],
        },
        headers=auth_headers,
    )
    assert response.status_code == 201
    order = response.json()
    assert order["status"] == "DRAFT"
    assert order["total_cost"] == "100.00"
    assert order["lines"][0]["line_number"] == 1

    response = client.post(
        f"/purchase-orders/{order['id']}/send",
        json={"expected_date": (_today() + timedelta(days=5)).isoformat()},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "ORDERED"

    response = client.post(
        f"/purchase-orders/{order['id']}/receive",
        json={"received_date": _today().isoformat()},
        headers=auth_headers,
    )
    assert response.status_code == 200
    batches = response.json()
    assert len(batches) == 1
    assert batches[0]["batch_number"] == "PO-API-1-L1"
    assert batches[0]["quantity_on_hand"] == 40
    assert batches[0]["selling_price"] == "3.00"

    response = client.post(f"/purchase-orders/{order['id']}/receive", headers=auth_headers)
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "invalid_state_transition"
    assert body["current_state"] == "RECEIVED"
    assert body["requested"] == "receive"

    response = client.post(
        "/sales",
        json={"lines": [{"product_id": product.id, "quantity": 15}], "payment_method": "CASH"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    sale = response.json()
    assert sale["cashier_id"] == cashier.id
    assert sale["total_amount"] == "45.00"
    assert sale["lines"][0]["batch_id"] == batches[0]["id"]
    assert sale["receipt_number"].startswith("RCPT-")

    response = client.get(f"/inventory/products/{product.id}/stock", headers=auth_headers)
    assert response.json()["quantity"] == 25

    response = client.get("/alerts/low-stock", headers=auth_headers)
    assert [(a["product_id"], a["severity"]) for a in response.json()] == [(product.id, "warning")]

    response = client.get(f"/sales/{sale['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["receipt_number"] == sale["receipt_number"]


def test_oversell_returns_insufficient_stock(client, auth_headers, make_product, make_batch):
    product = make_product()
    batch = make_batch(product, 4, _today() + timedelta(days=20))

    response = client.post(
        "/sales",
        json={"lines": [{"product_id": product.id, "quantity": 9}]},
        headers=auth_headers,
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "insufficient_stock"
    assert body["requested"] == 9
    assert body["available"] == 4

    response = client.get(f"/inventory/batches/{batch.id}", headers=auth_headers)
    assert response.json()["quantity_on_hand"] == 4


def test_duplicate_receipt_conflict(client, auth_headers, make_product, make_batch):
    product = make_product()
    make_batch(product, 10, _today() + timedelta(days=20))
    payload = {"lines": [{"product_id": product.id, "quantity": 1}], "receipt_number": "RCPT-FIXED"}

    assert client.post("/sales", json=payload, headers=auth_headers).status_code == 201

    response = client.post("/sales", json=payload, headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["field"] == "receipt_number"


def test_purchase_order_guards(client, auth_headers, make_supplier, make_product):
    supplier = make_supplier()
    product = make_product()

    response = client.post(
        "/purchase-orders",
        json={"supplier_id": supplier.id, "order_date": _today().isoformat()},
        headers=auth_headers,
    )
    order_id = response.json()["id"]
    assert response.json()["order_code"].startswith("PO")

    response = client.post(f"/purchase-orders/{order_id}/send", headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["field"] == "lines"

    response = client.put(
        f"/purchase-orders/{order_id}/lines",
        json={"lines": [{"product_id": product.id, "quantity": 3, "unit_cost": "1.00"}]},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert len(response.json()["lines"]) == 1

    response = client.get("/purchase-orders", params={"status": "DRAFT"}, headers=auth_headers)
    assert [o["id"] for o in response.json()] == [order_id]

    assert client.post(f"/purchase-orders/{order_id}/cancel", headers=auth_headers).status_code == 200
    assert client.delete(f"/purchase-orders/{order_id}", headers=auth_headers).status_code == 409

    response = client.post(
        "/purchase-orders",
        json={"supplier_id": supplier.id, "order_date": _today().isoformat()},
        headers=auth_headers,
    )
    draft_id = response.json()["id"]
    assert client.delete(f"/purchase-orders/{draft_id}", headers=auth_headers).status_code == 204
    assert client.get(f"/purchase-orders/{draft_id}", headers=auth_headers).status_code == 404


# =========================================================
# INVENTORY
# =========================================================
def test_manual_receipt_and_corrections(client, auth_headers, make_product):
    product = make_product()
    batch_payload = {
        "product_id": product.id,
        "batch_number": "MAN-77",
        "quantity": 20,
        "cost_price": "1.00",
        "selling_price": "1.80",
        "received_date": _today().isoformat(),
        "expiry_date": (_today() - timedelta(days=1)).isoformat(),
    }

    response = client.post("/inventory/batches", json=batch_payload, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["field"] == "expiry_date"

    batch_payload["expiry_date"] = (_today() + timedelta(days=200)).isoformat()
    response = client.post("/inventory/batches", json=batch_payload, headers=auth_headers)
    assert response.status_code == 201
    batch_id = response.json()["id"]

    assert client.post("/inventory/batches", json=batch_payload, headers=auth_headers).status_code == 409

    response = client.post(
        f"/inventory/batches/{batch_id}/adjust",
        json={"quantity_change": -5, "adjustment_type": "DAMAGED_GOODS", "reason": "Water damage"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert response.json()["quantity_change"] == -5

    response = client.put(
        f"/inventory/batches/{batch_id}/selling-price",
        json={"selling_price": "2.10"},
        headers=auth_headers,
    )
    assert response.json()["selling_price"] == "2.10"
    assert response.json()["quantity_on_hand"] == 15

    response = client.get(f"/inventory/products/{product.id}/available", headers=auth_headers)
    assert [b["id"] for b in response.json()] == [batch_id]

    response = client.post(f"/inventory/batches/{batch_id}/deactivate", headers=auth_headers)
    assert response.json()["active"] is False

    response = client.get(f"/inventory/products/{product.id}/available", headers=auth_headers)
    assert response.json() == []

    response = client.get("/inventory/batches", params={"search": "MAN-"}, headers=auth_headers)
    assert [b["id"] for b in response.json()] == [batch_id]


def test_batch_maintenance_database_errors_return_500(client, auth_headers, make_product, make_batch, monkeypatch):
    batch = make_batch(make_product(), 5, _today() + timedelta(days=60))

    def broken(*args, **kwargs):
        raise OperationalError("UPDATE inventory_batches", {}, Exception("database is locked"))

    monkeypatch.setattr(batch_ledger, "set_batch_active", broken)
    monkeypatch.setattr(batch_ledger, "update_selling_price", broken)

    response = client.post(f"/inventory/batches/{batch.id}/deactivate", headers=auth_headers)
    assert response.status_code == 500
    assert response.json()["detail"] == "Unable to deactivate batch"

    response = client.post(f"/inventory/batches/{batch.id}/activate", headers=auth_headers)
    assert response.status_code == 500
    assert response.json()["detail"] == "Unable to activate batch"

    response = client.put(
        f"/inventory/batches/{batch.id}/selling-price",
        json={"selling_price": "6.00"},
        headers=auth_headers,
    )
    assert response.status_code == 500
    assert response.json()["detail"] == "Unable to update selling price"


def test_unknown_resources_return_404(client, auth_headers):
    for path in ("/inventory/batches/4040", "/purchase-orders/4040", "/sales/4040", "/inventory/products/4040/stock"):
        response = client.get(path, headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


def test_near_expiry_endpoint_accepts_window_override(client, auth_headers, make_product, make_batch):
    product = make_product()
    make_batch(product, 3, _today() + timedelta(days=12))

    assert client.get("/alerts/near-expiry", headers=auth_headers).json() == []

    response = client.get("/alerts/near-expiry", params={"days": 15}, headers=auth_headers)
    assert [(a["product_id"], a["severity"]) for a in response.json()] == [(product.id, "warning")]

    assert client.get("/alerts/near-expiry", params={"days": 0}, headers=auth_headers).status_code == 422


def test_token_subject_must_be_a_staff_id():
    assert staff_id_from_token(create_access_token({"sub": "12"})) == 12
    assert staff_id_from_token(create_access_token({"sub": "cashier"})) is None
    assert staff_id_from_token(create_access_token({"sub": "12"}, expires_delta=timedelta(minutes=-5))) is None
