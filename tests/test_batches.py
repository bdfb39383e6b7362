from datetime import datetime, timezone

import pytest

from admin_core.db import x
from admin_core.services.batches import BatchInput, create_batch, get_batch, list_batches, sweep_batch_statuses
from admin_core.services.catalog import list_store_products
from admin_core.services.stock import resolve_stock


def _grn(store_id, store_product_id, **kw):
    data = dict(store_id=store_id, store_product_id=store_product_id, initial_quantity=50, cost_price=80)
    data.update(kw)
    return BatchInput(**data)


def test_create_variant_batch(conn, store_id, store_product_id, product_id):
    batch_id = create_batch(conn, _grn(store_id, store_product_id, variant_sku="RICE-1KG", purchase_date="2026-10-18"))
    b = get_batch(conn, batch_id)
    assert b["product_id"] == product_id
    assert b["variant_sku"] == "RICE-1KG"
    assert b["uses_shared_stock"] == 0
    assert b["available_quantity"] == b["initial_quantity"] == 50
    assert b["status"] == "active"
    assert b["batch_number"] == "GRN-STO1DOW-20261018-001"


def test_batch_numbers_increment_per_store_and_day(conn, store_id, store_product_id):
    for _ in range(2):
        create_batch(conn, _grn(store_id, store_product_id, variant_sku="RICE-1KG", purchase_date="2026-10-18"))
    numbers = sorted(b["batch_number"] for b in list_batches(conn, store_id=store_id))
    assert numbers == ["GRN-STO1DOW-20261018-001", "GRN-STO1DOW-20261018-002"]


def test_create_shared_batch(conn, store_id, store_product_id):
    batch_id = create_batch(conn, _grn(store_id, store_product_id, uses_shared_stock=True, base_unit="kg"))
    b = get_batch(conn, batch_id)
    assert b["uses_shared_stock"] == 1
    assert b["base_unit"] == "kg"
    assert b["variant_sku"] is None


@pytest.mark.parametrize(
    "kw, message",
    [
        (dict(variant_sku=""), "select a variant"),
        (dict(variant_sku="NOPE"), "does not belong"),
        (dict(uses_shared_stock=True, base_unit=""), "base unit"),
        (dict(uses_shared_stock=True, base_unit="bag"), "Base unit must be"),
        (dict(variant_sku="RICE-1KG", initial_quantity=0), "quantity"),
        (dict(variant_sku="RICE-1KG", cost_price=0), "cost price"),
        (dict(variant_sku="RICE-1KG", expiry_date="next week"), "Expiry date"),
    ],
)
def test_create_batch_validation(conn, store_id, store_product_id, kw, message):
    with pytest.raises(ValueError, match=message):
        create_batch(conn, _grn(store_id, store_product_id, **kw))


def test_create_batch_rejects_product_of_other_store(conn, other_store_id, store_product_id):
    with pytest.raises(ValueError, match="not assigned"):
        create_batch(conn, _grn(other_store_id, store_product_id, variant_sku="RICE-1KG"))


def test_grn_feeds_resolved_stock(conn, store_id, store_product_id):
    create_batch(conn, _grn(store_id, store_product_id, variant_sku="RICE-1KG", initial_quantity=12))
    create_batch(conn, _grn(store_id, store_product_id, variant_sku="RICE-5KG", initial_quantity=4))
    rows = resolve_stock(
        list_store_products(conn, store_id),
        [dict(b) for b in list_batches(conn, store_id=store_id)],
        now=datetime(2026, 10, 18, tzinfo=timezone.utc),
    )
    assert {r.variant_sku: r.stock for r in rows} == {"RICE-1KG": 12, "RICE-5KG": 4}

    create_batch(conn, _grn(store_id, store_product_id, uses_shared_stock=True, base_unit="kg", initial_quantity=30))
    rows = resolve_stock(
        list_store_products(conn, store_id),
        [dict(b) for b in list_batches(conn, store_id=store_id)],
        now=datetime(2026, 10, 18, tzinfo=timezone.utc),
    )
    assert {r.variant_sku: r.stock for r in rows} == {"RICE-1KG": 30, "RICE-5KG": 30}


def test_sweep_batch_statuses(conn, store_id, store_product_id):
    expired_id = create_batch(
        conn, _grn(store_id, store_product_id, variant_sku="RICE-1KG", expiry_date="2026-10-01")
    )
    empty_id = create_batch(conn, _grn(store_id, store_product_id, variant_sku="RICE-5KG"))
    x(conn, "UPDATE inventory_batches SET available_quantity=0 WHERE id=?", (empty_id,))
    fresh_id = create_batch(conn, _grn(store_id, store_product_id, variant_sku="RICE-5KG"))

    res = sweep_batch_statuses(conn, datetime(2026, 10, 18, tzinfo=timezone.utc))

    assert res == {"expired": 1, "depleted": 1}
    assert get_batch(conn, expired_id)["status"] == "expired"
    assert get_batch(conn, empty_id)["status"] == "depleted"
    assert get_batch(conn, fresh_id)["status"] == "active"
