from datetime import timedelta

from pharmastock.services import alerts as alert_service

from conftest import TODAY


# =========================================================
# LOW STOCK
# =========================================================
def test_low_stock_fires_at_threshold(db, make_product, make_batch):
    at_threshold = make_product(reorder_level=10)
    above = make_product(reorder_level=10)
    make_batch(at_threshold, 10, TODAY + timedelta(days=30))
    make_batch(above, 11, TODAY + timedelta(days=30))

    alerts = alert_service.low_stock_alerts(db, TODAY)

    assert [(a.product_id, a.current_stock, a.threshold, a.severity) for a in alerts] == [
        (at_threshold.id, 10, 10, "warning"),
    ]


def test_low_stock_threshold_precedence(db, make_product, make_batch):
    reorder_wins = make_product(reorder_level=2, min_stock=20)
    min_stock_only = make_product(min_stock=20)
    unconfigured = make_product()
    for product in (reorder_wins, min_stock_only, unconfigured):
        make_batch(product, 5, TODAY + timedelta(days=30))

    alerts = alert_service.low_stock_alerts(db, TODAY)

    assert [(a.product_id, a.threshold) for a in alerts] == [(min_stock_only.id, 20)]


def test_low_stock_counts_only_sellable_stock(db, make_product, make_batch):
    product = make_product(reorder_level=5)
    make_batch(product, 100, TODAY - timedelta(days=1))
    make_batch(product, 100, TODAY + timedelta(days=30), active=False)
    never_stocked = make_product(min_stock=0)
    make_product(reorder_level=5, active=False)

    alerts = alert_service.low_stock_alerts(db, TODAY)

    assert [(a.product_id, a.current_stock, a.severity) for a in alerts] == [
        (product.id, 0, "critical"),
        (never_stocked.id, 0, "critical"),
    ]


# =========================================================
# NEAR EXPIRY
# =========================================================
def test_near_expiry_uses_product_window(db, make_product, make_batch):
    product = make_product(expiry_alert_days=30)
    inside = make_batch(product, 4, TODAY + timedelta(days=30))
    make_batch(product, 4, TODAY + timedelta(days=31))
    make_batch(make_product(), 4, TODAY + timedelta(days=3))

    alerts = alert_service.near_expiry_alerts(db, TODAY)

    assert [(a.batch_id, a.days_until_expiry, a.severity) for a in alerts] == [
        (inside.id, 30, "warning"),
    ]


def test_near_expiry_excludes_expired_and_empty_batches(db, make_product, make_batch):
    product = make_product(expiry_alert_days=60)
    make_batch(product, 9, TODAY - timedelta(days=1))
    make_batch(product, 0, TODAY + timedelta(days=5))
    make_batch(product, 9, TODAY + timedelta(days=5), active=False)
    expiring_today = make_batch(product, 9, TODAY)

    alerts = alert_service.near_expiry_alerts(db, TODAY)

    assert [(a.batch_id, a.days_until_expiry, a.severity) for a in alerts] == [
        (expiring_today.id, 0, "critical"),
    ]


def test_near_expiry_critical_boundary_and_override(db, make_product, make_batch):
    product = make_product()
    seven = make_batch(product, 1, TODAY + timedelta(days=7))
    eight = make_batch(product, 1, TODAY + timedelta(days=8))
    make_batch(product, 1, TODAY + timedelta(days=40))

    assert alert_service.near_expiry_alerts(db, TODAY) == []

    alerts = alert_service.near_expiry_alerts(db, TODAY, days=10)

    assert [(a.batch_id, a.severity) for a in alerts] == [
        (seven.id, "critical"),
        (eight.id, "warning"),
    ]


def test_all_alerts_combines_both_families(db, make_product, make_batch):
    product = make_product(reorder_level=5, expiry_alert_days=14)
    make_batch(product, 3, TODAY + timedelta(days=10))

    summary = alert_service.all_alerts(db, TODAY)

    assert summary.as_of == TODAY
    assert [a.product_id for a in summary.low_stock] == [product.id]
    assert [a.product_id for a in summary.near_expiry] == [product.id]
