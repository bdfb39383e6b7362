from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from admin_core.db import q, x

logger = logging.getLogger(__name__)

UNITS = ("kg", "g", "ml", "liter", "piece", "pack")


def discount_pct(mrp: float, selling_price: float) -> float:
    """
    Discount off MRP in percent, rounded to 2 decimals.

    Always derived from MRP and selling price. MRP <= 0 gives 0, and a selling
    price above MRP never produces a negative discount.
    """
    try:
        mrp_f = float(mrp)
        sp_f = float(selling_price)
    except (TypeError, ValueError):
        return 0.0
    if mrp_f <= 0:
        return 0.0
    return round(max(0.0, (mrp_f - sp_f) / mrp_f * 100.0), 2)


@dataclass(frozen=True)
class Variant:
    sku: str
    size: float
    unit: str
    mrp: float
    selling_price: float
    is_available: bool = True

    @property
    def discount(self) -> float:
        return discount_pct(self.mrp, self.selling_price)


@dataclass(frozen=True)
class StoreProduct:
    store_product_id: int
    store_id: int
    product_id: int
    product_name: str
    variants: tuple[Variant, ...] = field(default_factory=tuple)
    is_active: bool = True
    is_featured: bool = False
    store_name: str = ""


def list_stores(conn, *, active_only: bool = True):
    if active_only:
        return q(conn, "SELECT * FROM stores WHERE is_active=1 ORDER BY name")
    return q(conn, "SELECT * FROM stores ORDER BY name")


def list_products(conn):
    return q(conn, "SELECT * FROM products WHERE is_active=1 ORDER BY name")


def list_store_products(conn, store_id: Optional[int] = None) -> list[StoreProduct]:
    """Store products (with nested variants) for one store, or for all stores when store_id is None."""
    sql = """
        SELECT sp.id, sp.store_id, sp.product_id, sp.is_active, sp.is_featured,
               p.name AS product_name, s.name AS store_name
        FROM store_products sp
        JOIN products p ON p.id = sp.product_id
        JOIN stores s ON s.id = sp.store_id
    """
    params: tuple = ()
    if store_id is not None:
        sql += " WHERE sp.store_id=?"
        params = (int(store_id),)
    sql += " ORDER BY s.name, p.name"
    rows = q(conn, sql, params)

    variant_rows = q(
        conn,
        """
        SELECT store_product_id, sku, size, unit, mrp, selling_price, is_available
        FROM store_product_variants
        ORDER BY store_product_id, id
        """,
    )
    by_sp: dict[int, list[Variant]] = {}
    for v in variant_rows:
        by_sp.setdefault(int(v["store_product_id"]), []).append(
            Variant(
                sku=str(v["sku"]),
                size=float(v["size"]),
                unit=str(v["unit"]),
                mrp=float(v["mrp"]),
                selling_price=float(v["selling_price"]),
                is_available=bool(v["is_available"]),
            )
        )

    return [
        StoreProduct(
            store_product_id=int(r["id"]),
            store_id=int(r["store_id"]),
            product_id=int(r["product_id"]),
            product_name=str(r["product_name"]),
            variants=tuple(by_sp.get(int(r["id"]), [])),
            is_active=bool(r["is_active"]),
            is_featured=bool(r["is_featured"]),
            store_name=str(r["store_name"]),
        )
        for r in rows
    ]


def get_store_product(conn, store_product_id: int) -> Optional[StoreProduct]:
    for sp in list_store_products(conn):
        if sp.store_product_id == int(store_product_id):
            return sp
    return None


def _validate_variants(variants: list[Variant]) -> None:
    if not variants:
        raise ValueError("At least one variant is required.")

    seen: set[str] = set()
    for v in variants:
        sku = str(v.sku).strip()
        if not sku:
            raise ValueError("Every variant needs a SKU.")
        if sku in seen:
            raise ValueError(f"Duplicate SKU '{sku}' in this product.")
        seen.add(sku)

        if v.unit not in UNITS:
            raise ValueError(f"Unit must be one of: {', '.join(UNITS)}.")
        if float(v.size) <= 0:
            raise ValueError(f"Size must be > 0 for SKU {sku}.")
        if float(v.mrp) < 0 or float(v.selling_price) < 0:
            raise ValueError(f"Prices cannot be negative for SKU {sku}.")
        if float(v.selling_price) > float(v.mrp):
            raise ValueError(f"Selling price cannot exceed MRP for SKU {sku}.")


def save_store_product(
    conn,
    *,
    store_id: int,
    product_id: int,
    variants: list[Variant],
    is_active: bool = True,
    is_featured: bool = False,
) -> int:
    """
    Create or update the store product for (store, product) and replace its variants.

    Returns the store product id.
    """
    _validate_variants(variants)

    if not q(conn, "SELECT id FROM stores WHERE id=?", (int(store_id),)):
        raise ValueError("Store not found.")
    if not q(conn, "SELECT id FROM products WHERE id=?", (int(product_id),)):
        raise ValueError("Product not found.")

    existing = q(
        conn,
        "SELECT id FROM store_products WHERE store_id=? AND product_id=?",
        (int(store_id), int(product_id)),
    )
    if existing:
        sp_id = int(existing[0]["id"])
        x(
            conn,
            "UPDATE store_products SET is_active=?, is_featured=? WHERE id=?",
            (int(bool(is_active)), int(bool(is_featured)), sp_id),
        )
    else:
        sp_id = x(
            conn,
            "INSERT INTO store_products (store_id, product_id, is_active, is_featured) VALUES (?, ?, ?, ?)",
            (int(store_id), int(product_id), int(bool(is_active)), int(bool(is_featured))),
        )

    update_variants(conn, sp_id, variants)
    logger.info("Saved store product %s (store=%s product=%s, %d variants)", sp_id, store_id, product_id, len(variants))
    return sp_id


def update_variants(conn, store_product_id: int, variants: list[Variant]) -> None:
    # Upsert only: variants are retired through is_available, never deleted.
    _validate_variants(variants)

    for v in variants:
        conn.execute(
            """
            INSERT INTO store_product_variants (store_product_id, sku, size, unit, mrp, selling_price, is_available)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (store_product_id, sku) DO UPDATE SET
              size=excluded.size,
              unit=excluded.unit,
              mrp=excluded.mrp,
              selling_price=excluded.selling_price,
              is_available=excluded.is_available
            """,
            (
                int(store_product_id),
                str(v.sku).strip(),
                float(v.size),
                str(v.unit),
                float(v.mrp),
                float(v.selling_price),
                int(bool(v.is_available)),
            ),
        )
    conn.commit()


def set_store_product_flags(conn, store_product_id: int, *, is_active: bool, is_featured: bool) -> None:
    x(
        conn,
        "UPDATE store_products SET is_active=?, is_featured=? WHERE id=?",
        (int(bool(is_active)), int(bool(is_featured)), int(store_product_id)),
    )
