"""
Pytest fixtures: a fresh schema-initialised SQLite database per test plus small
builders for the catalog rows most tests need.
"""
import pytest

from admin_core.db import connect, ensure_schema, x
from admin_core.services.catalog import Variant, save_store_product
from admin_core.services.orders import create_delivery_partner, create_order


@pytest.fixture
def conn(tmp_path):
    conn = connect(tmp_path / "test.db")
    ensure_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def store_id(conn):
    return x(conn, "INSERT INTO stores(name) VALUES (?)", ("Store 1 - Downtown",))


@pytest.fixture
def other_store_id(conn):
    return x(conn, "INSERT INTO stores(name) VALUES (?)", ("Store 2 - Malleshwaram",))


@pytest.fixture
def product_id(conn):
    return x(conn, "INSERT INTO products(name, category) VALUES (?, ?)", ("Basmati Rice", "Staples"))


@pytest.fixture
def rice_variants():
    return [
        Variant(sku="RICE-1KG", size=1, unit="kg", mrp=120, selling_price=108),
        Variant(sku="RICE-5KG", size=5, unit="kg", mrp=560, selling_price=499),
    ]


@pytest.fixture
def store_product_id(conn, store_id, product_id, rice_variants):
    return save_store_product(conn, store_id=store_id, product_id=product_id, variants=rice_variants)


@pytest.fixture
def partner_id(conn):
    return create_delivery_partner(conn, name="Ravi Kumar", phone="9800000001")


@pytest.fixture
def make_order(conn):
    counter = {"n": 0}

    def _make(status="pending", payment_method="cod", payment_status="pending", total=540.0, partner_id=None):
        counter["n"] += 1
        order_id = create_order(
            conn,
            order_number=f"ORD-TEST-{counter['n']:04d}",
            total_amount=total,
            payment_method=payment_method,
            payment_status=payment_status,
        )
        # Place the order directly in the requested state.
        x(
            conn,
            "UPDATE orders SET status=?, delivery_partner_id=? WHERE id=?",
            (status, partner_id, order_id),
        )
        return order_id

    return _make
