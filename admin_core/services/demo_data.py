from __future__ import annotations

import random
from datetime import date, timedelta

from admin_core.db import q, x, ensure_schema
from admin_core.services.batches import BatchInput, create_batch
from admin_core.services.catalog import Variant, save_store_product
from admin_core.services.orders import create_delivery_partner, create_order


DEFAULT_STORES = ["Store 1 - Downtown", "Store 2 - Malleshwaram", "Dark Store - Warehouse"]
DEFAULT_PRODUCTS = [
    # (name, category, shared?, variants as (sku suffix, size, unit, mrp, selling))
    ("Basmati Rice", "Staples", True, [("1KG", 1, "kg", 120, 108), ("5KG", 5, "kg", 560, 499)]),
    ("Toor Dal", "Staples", True, [("500G", 500, "g", 85, 79), ("1KG", 1, "kg", 160, 149)]),
    ("Sunflower Oil", "Oils", False, [("1L", 1, "liter", 180, 165), ("5L", 5, "liter", 850, 799)]),
    ("Whole Milk", "Dairy", False, [("500ML", 500, "ml", 32, 32)]),
    ("Brown Eggs", "Dairy", False, [("6PC", 6, "piece", 60, 54), ("12PC", 12, "piece", 115, 99)]),
]
DEFAULT_PARTNERS = [("Ravi Kumar", "9800000001"), ("Anita Rao", "9800000002"), ("Imran Sheikh", "9800000003")]


def upsert_reference_data(conn) -> None:
    ensure_schema(conn)

    for name in DEFAULT_STORES:
        x(conn, "INSERT OR IGNORE INTO stores(name) VALUES (?)", (name,))

    for name, category, _, _ in DEFAULT_PRODUCTS:
        x(conn, "INSERT OR IGNORE INTO products(name, category) VALUES (?, ?)", (name, category))


def wipe_all(conn) -> None:
    # Keep schema, delete data (order matters for FKs).
    for t in [
        "order_status_history",
        "orders",
        "delivery_partners",
        "inventory_batches",
        "store_product_variants",
        "store_products",
        "products",
        "stores",
    ]:
        conn.execute(f"DELETE FROM {t};")
    conn.commit()


def _sku(product_name: str, suffix: str) -> str:
    return "".join(w[:3] for w in product_name.upper().split()) + "-" + suffix


def load_demo_data(conn, *, seed: int = 7) -> None:
    random.seed(seed)
    upsert_reference_data(conn)

    stores = q(conn, "SELECT * FROM stores ORDER BY id")
    products = {str(p["name"]): int(p["id"]) for p in q(conn, "SELECT * FROM products")}

    today = date.today()
    for st_row in stores:
        store_id = int(st_row["id"])
        for name, _, shared, variants in DEFAULT_PRODUCTS:
            sp_id = save_store_product(
                conn,
                store_id=store_id,
                product_id=products[name],
                variants=[
                    Variant(sku=_sku(name, sfx), size=float(size), unit=unit, mrp=float(mrp), selling_price=float(sp))
                    for sfx, size, unit, mrp, sp in variants
                ],
                is_featured=random.random() < 0.3,
            )

            # Already stocked by an earlier load.
            if q(
                conn,
                "SELECT 1 FROM inventory_batches WHERE store_id=? AND product_id=? LIMIT 1",
                (store_id, products[name]),
            ):
                continue

            if shared:
                create_batch(
                    conn,
                    BatchInput(
                        store_id=store_id,
                        store_product_id=sp_id,
                        uses_shared_stock=True,
                        base_unit=variants[0][2],
                        initial_quantity=float(random.randint(10, 80)),
                        cost_price=round(random.uniform(40, 90), 2),
                        supplier="Wholesale Mandi",
                        purchase_date=(today - timedelta(days=random.randint(1, 10))).isoformat(),
                    ),
                )
                continue

            for sfx, *_ in variants:
                create_batch(
                    conn,
                    BatchInput(
                        store_id=store_id,
                        store_product_id=sp_id,
                        variant_sku=_sku(name, sfx),
                        initial_quantity=float(random.randint(5, 60)),
                        cost_price=round(random.uniform(20, 700), 2),
                        supplier="Distributor",
                        purchase_date=(today - timedelta(days=random.randint(1, 10))).isoformat(),
                        expiry_date=(today + timedelta(days=random.randint(-3, 30))).isoformat(),
                    ),
                )

    for name, phone in DEFAULT_PARTNERS:
        if q(conn, "SELECT 1 FROM delivery_partners WHERE name=?", (name,)):
            continue
        create_delivery_partner(conn, name=name, phone=phone)

    for i in range(8):
        method = random.choice(["cod", "cod", "online", "wallet"])
        order_number = f"ORD-{today.strftime('%Y%m%d')}-{i + 1:04d}"
        if q(conn, "SELECT 1 FROM orders WHERE order_number=?", (order_number,)):
            continue
        create_order(
            conn,
            order_number=order_number,
            store_id=int(random.choice(stores)["id"]),
            customer=f"Customer {i + 1}",
            total_amount=round(random.uniform(150, 2500), 2),
            payment_method=method,
            payment_status="pending" if method == "cod" else "paid",
        )
