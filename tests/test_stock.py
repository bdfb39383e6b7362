from datetime import datetime, timezone

import pytest

from admin_core.services.catalog import StoreProduct, Variant
from admin_core.services.stock import (
    Margin,
    SharedBatch,
    VariantBatch,
    average_cost_per_quantity,
    average_margin_pct,
    batch_from_record,
    is_sellable,
    low_stock_rows,
    product_margins,
    resolve_stock,
    unit_cost,
    variant_margin,
)

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def _sp(store_id=1, product_id=10, skus=("RICE-1KG", "RICE-5KG"), is_active=True):
    return StoreProduct(
        store_product_id=100 + int(store_id),
        store_id=store_id,
        product_id=product_id,
        product_name="Basmati Rice",
        variants=tuple(Variant(sku=s, size=1, unit="kg", mrp=120, selling_price=108) for s in skus),
        is_active=is_active,
    )


def _batch(sku=None, qty=10, store="1", product="10", status="active", expiry=None, shared=False):
    rec = {
        "_id": f"b-{sku}-{qty}",
        "storeId": store,
        "productId": product,
        "initialQuantity": max(qty, 1),
        "availableQuantity": qty,
        "costPrice": 50,
        "status": status,
        "usesSharedStock": shared,
    }
    if shared:
        rec["baseUnit"] = "kg"
    else:
        rec["variantSku"] = sku
    if expiry:
        rec["expiryDate"] = expiry
    return rec


def _stock(rows):
    return {r.variant_sku: r.stock for r in rows}


def test_variant_batches_sum_per_sku():
    rows = resolve_stock(
        [_sp()],
        [_batch("RICE-1KG", 10), _batch("RICE-1KG", 5), _batch("RICE-5KG", 3)],
        now=NOW,
    )
    assert _stock(rows) == {"RICE-1KG": 15, "RICE-5KG": 3}


def test_expired_batch_contributes_nothing():
    rows = resolve_stock(
        [_sp()],
        [_batch("RICE-1KG", 40, expiry="2026-05-31"), _batch("RICE-1KG", 7, expiry="2026-12-31")],
        now=NOW,
    )
    assert _stock(rows)["RICE-1KG"] == 7


def test_missing_expiry_never_excludes():
    rows = resolve_stock([_sp()], [_batch("RICE-1KG", 12)], now=NOW)
    assert _stock(rows)["RICE-1KG"] == 12


@pytest.mark.parametrize("status", ["expired", "depleted"])
def test_non_active_batches_never_count(status):
    rows = resolve_stock([_sp()], [_batch("RICE-1KG", 25, status=status)], now=NOW)
    assert _stock(rows)["RICE-1KG"] == 0


def test_batches_from_other_store_do_not_leak():
    rows = resolve_stock([_sp(store_id=1)], [_batch("RICE-1KG", 30, store="2")], now=NOW)
    assert _stock(rows)["RICE-1KG"] == 0


def test_shared_stock_is_pooled_and_supersedes_variant_batches():
    batches = [
        _batch(qty=40, shared=True),
        _batch(qty=2, shared=True),
        _batch("RICE-1KG", 100),
        _batch("RICE-5KG", 9),
    ]
    rows = resolve_stock([_sp()], batches, now=NOW)
    assert _stock(rows) == {"RICE-1KG": 42, "RICE-5KG": 42}


def test_zero_quantity_shared_pool_still_suppresses_variant_batches():
    rows = resolve_stock([_sp()], [_batch(qty=0, shared=True), _batch("RICE-1KG", 50)], now=NOW)
    assert _stock(rows) == {"RICE-1KG": 0, "RICE-5KG": 0}


def test_expired_shared_batch_keeps_shared_mode_with_zero_pool():
    rows = resolve_stock(
        [_sp()],
        [_batch(qty=30, shared=True, expiry="2026-01-01"), _batch("RICE-1KG", 50)],
        now=NOW,
    )
    assert _stock(rows)["RICE-1KG"] == 0


def test_shared_pool_is_per_store():
    rows = resolve_stock(
        [_sp(store_id=1), _sp(store_id=2)],
        [_batch(qty=40, shared=True, store="1"), _batch("RICE-1KG", 6, store="2")],
        now=NOW,
    )
    by_store = {(r.store_id, r.variant_sku): r.stock for r in rows}
    assert by_store[("1", "RICE-5KG")] == 40
    assert by_store[("2", "RICE-1KG")] == 6
    assert by_store[("2", "RICE-5KG")] == 0


def test_inactive_store_products_are_skipped():
    assert resolve_stock([_sp(is_active=False)], [_batch("RICE-1KG", 5)], now=NOW) == []


def test_malformed_batches_are_skipped_not_raised():
    batches = [
        {"productId": "10", "variantSku": "RICE-1KG", "availableQuantity": 5, "status": "active"},
        {"storeId": "1", "variantSku": "RICE-1KG", "availableQuantity": 5, "status": "active"},
        {"storeId": "1", "productId": "10", "availableQuantity": 5, "status": "active"},
        {"storeId": "1", "productId": "10", "variantSku": "RICE-1KG", "availableQuantity": "lots", "status": "active"},
        _batch("RICE-1KG", 4),
    ]
    rows = resolve_stock([_sp()], batches, now=NOW)
    assert _stock(rows) == {"RICE-1KG": 4, "RICE-5KG": 0}


def test_nested_references_are_flattened():
    rec = _batch("RICE-1KG", 8)
    rec["storeId"] = {"_id": "1", "name": "Store 1"}
    rec["productId"] = {"_id": "10", "name": "Basmati Rice"}
    rows = resolve_stock([_sp()], [rec], now=NOW)
    assert _stock(rows)["RICE-1KG"] == 8


def test_stock_never_negative():
    rows = resolve_stock([_sp()], [_batch("RICE-1KG", -5)], now=NOW)
    assert _stock(rows)["RICE-1KG"] == 0


def test_rows_carry_pricing_and_recomputed_discount():
    rows = resolve_stock([_sp()], [], now=NOW)
    row = rows[0]
    assert (row.product_name, row.mrp, row.selling_price, row.discount) == ("Basmati Rice", 120, 108, 10.0)
    assert row.is_available is True


def test_batch_from_record_builds_tagged_union():
    shared = batch_from_record(_batch(qty=5, shared=True))
    variant = batch_from_record(_batch("RICE-1KG", 5))
    assert isinstance(shared, SharedBatch) and shared.base_unit == "kg"
    assert isinstance(variant, VariantBatch) and variant.variant_sku == "RICE-1KG"


def test_is_sellable_compares_expiry_against_injected_now():
    b = batch_from_record(_batch("RICE-1KG", 5, expiry="2026-06-01T12:30:00Z"))
    assert is_sellable(b, NOW)
    assert not is_sellable(b, datetime(2026, 6, 1, 13, 0, tzinfo=timezone.utc))


def test_low_stock_threshold_is_strictly_below_twenty():
    rows = resolve_stock(
        [_sp()],
        [_batch("RICE-1KG", 20), _batch("RICE-5KG", 19)],
        now=NOW,
    )
    assert [r.variant_sku for r in low_stock_rows(rows)] == ["RICE-5KG"]


def test_average_cost_is_weighted_by_quantity():
    assert average_cost_per_quantity([(1000, 10), (300, 5)]) == 86.67


def test_average_cost_handles_zero_quantity():
    assert average_cost_per_quantity([]) == 0
    assert unit_cost(500, 0) == 0


def test_single_batch_unit_cost():
    assert unit_cost(1000, 10) == 100


def test_variant_margin_is_on_cost():
    assert variant_margin(108, 80) == Margin(profit_per_unit=28.0, margin_pct=35.0)


def test_variant_margin_can_be_negative():
    assert variant_margin(50, 80) == Margin(profit_per_unit=-30.0, margin_pct=-37.5)


def test_variant_margin_with_zero_cost():
    assert variant_margin(108, 0) == Margin(profit_per_unit=108.0, margin_pct=0.0)


def test_product_margins_use_weighted_cost():
    sp = _sp()
    cost = average_cost_per_quantity([(1000, 10), (300, 5)])
    margins = product_margins(sp.variants, cost)
    assert set(margins) == {"RICE-1KG", "RICE-5KG"}
    assert margins["RICE-1KG"] == variant_margin(108, 86.67)


def test_average_margin_pct():
    variants = (
        Variant(sku="A", size=1, unit="kg", mrp=120, selling_price=120),
        Variant(sku="B", size=1, unit="kg", mrp=120, selling_price=90),
    )
    # (20% + -10%) / 2
    assert average_margin_pct(variants, 100) == 5.0
    assert average_margin_pct(variants, 0) == 0.0
    assert average_margin_pct((), 100) == 0.0
