import pytest

from admin_core.db import q
from admin_core.services.catalog import (
    Variant,
    discount_pct,
    get_store_product,
    list_store_products,
    save_store_product,
)


@pytest.mark.parametrize(
    "mrp, selling, expected",
    [
        (120, 108, 10.0),
        (0, 50, 0.0),
        (100, 120, 0.0),
        (99, 99, 0.0),
        (3, 2, 33.33),
    ],
)
def test_discount_pct(mrp, selling, expected):
    assert discount_pct(mrp, selling) == expected


def test_variant_discount_is_derived():
    v = Variant(sku="A", size=1, unit="kg", mrp=200, selling_price=150)
    assert v.discount == 25.0


def test_list_store_products_nests_variants(conn, store_product_id, store_id):
    products = list_store_products(conn, store_id)
    assert len(products) == 1
    sp = products[0]
    assert sp.store_product_id == store_product_id
    assert [v.sku for v in sp.variants] == ["RICE-1KG", "RICE-5KG"]
    assert sp.product_name == "Basmati Rice"


def test_list_store_products_filters_by_store(conn, store_product_id, other_store_id):
    assert list_store_products(conn, other_store_id) == []
    assert len(list_store_products(conn)) == 1


def test_save_store_product_updates_in_place_and_never_deletes_variants(conn, store_id, product_id, store_product_id):
    again = save_store_product(
        conn,
        store_id=store_id,
        product_id=product_id,
        variants=[Variant(sku="RICE-1KG", size=1, unit="kg", mrp=130, selling_price=117, is_available=False)],
        is_featured=True,
    )
    assert again == store_product_id

    sp = get_store_product(conn, store_product_id)
    by_sku = {v.sku: v for v in sp.variants}
    assert set(by_sku) == {"RICE-1KG", "RICE-5KG"}
    assert by_sku["RICE-1KG"].mrp == 130
    assert by_sku["RICE-1KG"].is_available is False
    assert sp.is_featured is True


def test_discount_is_not_stored(conn, store_product_id):
    cols = [r["name"] for r in q(conn, "PRAGMA table_info(store_product_variants)")]
    assert "discount" not in cols


@pytest.mark.parametrize(
    "variants, message",
    [
        ([], "At least one variant"),
        ([Variant(sku=" ", size=1, unit="kg", mrp=10, selling_price=9)], "SKU"),
        (
            [
                Variant(sku="X", size=1, unit="kg", mrp=10, selling_price=9),
                Variant(sku="X", size=2, unit="kg", mrp=20, selling_price=18),
            ],
            "Duplicate SKU",
        ),
        ([Variant(sku="X", size=1, unit="bag", mrp=10, selling_price=9)], "Unit"),
        ([Variant(sku="X", size=1, unit="kg", mrp=10, selling_price=11)], "cannot exceed MRP"),
    ],
)
def test_save_store_product_validation(conn, store_id, product_id, variants, message):
    with pytest.raises(ValueError, match=message):
        save_store_product(conn, store_id=store_id, product_id=product_id, variants=variants)


def test_save_store_product_unknown_store(conn, product_id, rice_variants):
    with pytest.raises(ValueError, match="Store not found"):
        save_store_product(conn, store_id=999, product_id=product_id, variants=rice_variants)
