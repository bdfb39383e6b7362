from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from admin_core.db import q, x
from admin_core.services.catalog import UNITS, get_store_product
from admin_core.utils import as_utc, iso_now, iso_today

logger = logging.getLogger(__name__)

BATCH_STATUSES = ("active", "expired", "depleted")


@dataclass
class BatchInput:
    store_id: int
    store_product_id: int
    initial_quantity: float
    cost_price: float
    uses_shared_stock: bool = False
    variant_sku: Optional[str] = None
    base_unit: Optional[str] = None
    batch_number: Optional[str] = None
    supplier: Optional[str] = None
    purchase_date: Optional[str] = None
    expiry_date: Optional[str] = None
    notes: Optional[str] = None


def list_batches(conn, *, store_id: Optional[int] = None, product_id: Optional[int] = None):
    sql = """
        SELECT b.*, s.name AS store_name, p.name AS product_name
        FROM inventory_batches b
        LEFT JOIN stores s ON s.id = b.store_id
        LEFT JOIN products p ON p.id = b.product_id
        WHERE 1=1
    """
    params: list = []
    if store_id is not None:
        sql += " AND b.store_id=?"
        params.append(int(store_id))
    if product_id is not None:
        sql += " AND b.product_id=?"
        params.append(int(product_id))
    sql += " ORDER BY b.id DESC"
    return q(conn, sql, params)


def get_batch(conn, batch_id: int):
    rows = q(conn, "SELECT * FROM inventory_batches WHERE id=?", (int(batch_id),))
    return rows[0] if rows else None


def _normalize_store_code(store_name: str) -> str:
    # "Store 2 - Malleshwaram" -> "STO2MAL"
    parts = [p for p in str(store_name).strip().upper().replace("-", " ").split() if p]
    if not parts:
        return "ST"
    if len(parts) == 1:
        return parts[0][:6]
    return "".join(p[:3] for p in parts)[:8]


def _generate_batch_number(conn, *, store_id: int, purchase_date: str) -> str:
    """
    System batch number:
      GRN-{STORECODE}-{YYYYMMDD}-{NNN}
    """
    r = q(conn, "SELECT name FROM stores WHERE id=?", (int(store_id),))
    if not r:
        raise ValueError("Store not found.")
    st_code = _normalize_store_code(str(r[0]["name"]))

    ymd = str(purchase_date).replace("-", "")
    prefix = f"GRN-{st_code}-{ymd}-"

    r = q(conn, "SELECT COUNT(1) AS n FROM inventory_batches WHERE batch_number LIKE ?", (prefix + "%",))
    n = int(r[0]["n"]) if r else 0
    return f"{prefix}{n + 1:03d}"


def _positive(value, label: str) -> float:
    try:
        f = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a number.")
    if f <= 0:
        raise ValueError(f"Please enter a valid {label.lower()} (> 0).")
    return f


def create_batch(conn, data: BatchInput) -> int:
    """
    Goods received note: records one purchase batch for a store product.

    A variant-specific batch needs a SKU of that store product; a shared-stock
    batch needs a base unit and feeds every variant of the product in the store.
    """
    if data.store_id is None:
        raise ValueError("Please select a specific store to add stock.")

    sp = get_store_product(conn, int(data.store_product_id)) if data.store_product_id else None
    if sp is None:
        raise ValueError("Please select a product.")
    if int(sp.store_id) != int(data.store_id):
        raise ValueError("This product is not assigned to the selected store.")

    variant_sku: Optional[str] = None
    base_unit: Optional[str] = None
    if data.uses_shared_stock:
        base_unit = (data.base_unit or "").strip()
        if not base_unit:
            raise ValueError("Please select a base unit for shared stock.")
        if base_unit not in UNITS:
            raise ValueError(f"Base unit must be one of: {', '.join(UNITS)}.")
    else:
        variant_sku = (data.variant_sku or "").strip()
        if not variant_sku:
            raise ValueError("Please select a variant for variant-specific stock.")
        if variant_sku not in {v.sku for v in sp.variants}:
            raise ValueError(f"Variant {variant_sku} does not belong to this product.")

    qty = _positive(data.initial_quantity, "Quantity")
    cost = _positive(data.cost_price, "Cost price")

    purchase_date = data.purchase_date or iso_today()
    expiry = None
    if data.expiry_date:
        if as_utc(data.expiry_date) is None:
            raise ValueError("Expiry date must be an ISO date (YYYY-MM-DD).")
        expiry = str(data.expiry_date)

    batch_number = (data.batch_number or "").strip() or _generate_batch_number(
        conn, store_id=int(data.store_id), purchase_date=purchase_date
    )

    batch_id = x(
        conn,
        """
        INSERT INTO inventory_batches (
            batch_number, store_id, product_id,
            uses_shared_stock, variant_sku, base_unit,
            initial_quantity, available_quantity, cost_price,
            supplier, purchase_date, expiry_date, status, notes, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'active', ?, ?)
        """,
        (
            batch_number,
            int(data.store_id),
            int(sp.product_id),
            int(bool(data.uses_shared_stock)),
            variant_sku,
            base_unit,
            qty,
            qty,
            cost,
            (data.supplier or "").strip() or None,
            purchase_date,
            expiry,
            (data.notes or "").strip() or None,
            iso_now(),
        ),
    )
    logger.info(
        "GRN %s: store=%s product=%s qty=%s shared=%s",
        batch_number, data.store_id, sp.product_id, qty, bool(data.uses_shared_stock),
    )
    return int(batch_id)


def sweep_batch_statuses(conn, now: datetime) -> dict:
    """
    Retire active batches: past expiry -> 'expired', nothing left -> 'depleted'.

    Returns counts per new status.
    """
    now_utc = as_utc(now)
    expired = 0
    depleted = 0
    for b in q(conn, "SELECT id, expiry_date, available_quantity FROM inventory_batches WHERE status='active'"):
        exp = as_utc(b["expiry_date"])
        if exp is not None and exp < now_utc:
            x(conn, "UPDATE inventory_batches SET status='expired' WHERE id=?", (int(b["id"]),))
            expired += 1
        elif float(b["available_quantity"]) <= 0:
            x(conn, "UPDATE inventory_batches SET status='depleted' WHERE id=?", (int(b["id"]),))
            depleted += 1

    if expired or depleted:
        logger.info("Batch sweep: %d expired, %d depleted", expired, depleted)
    return {"expired": expired, "depleted": depleted}
