"""
Batch ledger resolution: sellable stock per (store product, variant).

Stock is never stored. It is derived from purchase batches every time it is
displayed:

* only batches of the same store, with ``status == 'active'`` and not past their
  expiry date, contribute;
* a batch either feeds one variant (``VariantBatch``, matched by SKU) or a pool
  shared by every variant of the product in that store (``SharedBatch``);
* once a product has shared-stock batches in a store, every variant reports the
  pooled quantity and variant-specific batches are ignored.

Loose records (dicts from JSON, ``sqlite3.Row``) are converted once by
``batch_from_record``; anything malformed is skipped rather than raised.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Union

from admin_core.config import LOW_STOCK_THRESHOLD
from admin_core.services.catalog import StoreProduct, Variant, discount_pct
from admin_core.utils import as_utc, safe_div

logger = logging.getLogger(__name__)

ACTIVE = "active"


@dataclass(frozen=True)
class VariantBatch:
    batch_id: Any
    store_id: str
    product_id: str
    variant_sku: str
    initial_quantity: float
    available_quantity: float
    cost_price: float
    status: str
    expiry_date: Optional[datetime] = None


@dataclass(frozen=True)
class SharedBatch:
    batch_id: Any
    store_id: str
    product_id: str
    base_unit: str
    initial_quantity: float
    available_quantity: float
    cost_price: float
    status: str
    expiry_date: Optional[datetime] = None


Batch = Union[VariantBatch, SharedBatch]


@dataclass(frozen=True)
class VariantStockRow:
    store_product_id: Any
    store_id: str
    product_id: str
    product_name: str
    variant_sku: str
    mrp: float
    selling_price: float
    discount: float
    stock: float
    is_available: bool


def _ref_id(value: Any) -> Optional[str]:
    # References arrive either as a bare id or as a nested {"_id": ..., "name": ...} object.
    if value is None:
        return None
    if isinstance(value, Mapping):
        value = value.get("_id", value.get("id"))
        if value is None:
            return None
    s = str(value).strip()
    return s or None


def _get(record: Any, *keys: str) -> Any:
    for k in keys:
        try:
            v = record[k]
        except (KeyError, IndexError, TypeError):
            continue
        if v is not None:
            return v
    return None


def _num(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return value is True or value == 1


def batch_from_record(record: Any) -> Optional[Batch]:
    """
    Build a tagged batch from a loosely typed record.

    Accepts both camelCase API keys and snake_case column names. Returns None when
    the record cannot be attributed (no store, no product, no SKU for a
    variant-specific batch, non-numeric quantities).
    """
    store_id = _ref_id(_get(record, "store_id", "storeId"))
    product_id = _ref_id(_get(record, "product_id", "productId"))
    if store_id is None or product_id is None:
        logger.debug("Skipping batch without store/product reference: %r", record)
        return None

    available = _num(_get(record, "available_quantity", "availableQuantity"))
    initial = _num(_get(record, "initial_quantity", "initialQuantity"))
    cost = _num(_get(record, "cost_price", "costPrice"))
    if available is None or initial is None or cost is None:
        logger.debug("Skipping batch with non-numeric quantities: %r", record)
        return None

    common = dict(
        batch_id=_get(record, "id", "_id"),
        store_id=store_id,
        product_id=product_id,
        initial_quantity=initial,
        available_quantity=max(0.0, available),
        cost_price=cost,
        status=str(_get(record, "status") or "").strip().lower(),
        expiry_date=as_utc(_get(record, "expiry_date", "expiryDate")),
    )

    if _flag(_get(record, "uses_shared_stock", "usesSharedStock")):
        return SharedBatch(base_unit=str(_get(record, "base_unit", "baseUnit") or ""), **common)

    sku = _get(record, "variant_sku", "variantSku")
    if sku is None or not str(sku).strip():
        logger.debug("Skipping variant batch without SKU: %r", record)
        return None
    return VariantBatch(variant_sku=str(sku).strip(), **common)


def ingest_batches(records: Iterable[Any]) -> list[Batch]:
    out: list[Batch] = []
    for r in records:
        if isinstance(r, (VariantBatch, SharedBatch)):
            out.append(r)
            continue
        b = batch_from_record(r)
        if b is not None:
            out.append(b)
    return out


def is_expired(batch: Batch, now: datetime) -> bool:
    return batch.expiry_date is not None and batch.expiry_date < as_utc(now)


def is_sellable(batch: Batch, now: datetime) -> bool:
    return batch.status == ACTIVE and not is_expired(batch, now)


def _sellable_sum(batches: Iterable[Batch], now: datetime) -> float:
    return sum((b.available_quantity for b in batches if not is_expired(b, now)), 0.0)


def resolve_product_stock(store_product: StoreProduct, batches: Iterable[Batch], *, now: datetime) -> dict[str, float]:
    """SKU -> resolved stock for one store product."""
    store_id = str(store_product.store_id)
    product_id = str(store_product.product_id)

    product_batches = [
        b for b in batches
        if b.store_id == store_id and b.product_id == product_id and b.status == ACTIVE
    ]
    shared_batches = [b for b in product_batches if isinstance(b, SharedBatch)]
    variant_batches = [b for b in product_batches if isinstance(b, VariantBatch)]

    shared_stock = _sellable_sum(shared_batches, now)
    # An empty (zero-quantity) shared pool still puts the product in shared mode.
    has_shared_stock = shared_stock > 0 or len(shared_batches) > 0

    out: dict[str, float] = {}
    for v in store_product.variants:
        if has_shared_stock:
            out[v.sku] = shared_stock
        else:
            out[v.sku] = _sellable_sum((b for b in variant_batches if b.variant_sku == v.sku), now)
    return out


def resolve_stock(store_products: Iterable[StoreProduct], batches: Iterable[Any], *, now: datetime) -> list[VariantStockRow]:
    """
    One row per (active store product, variant) with the resolved stock.

    ``batches`` may be raw records or already-ingested batches. ``now`` is the
    reference time for expiry checks.
    """
    ledger = ingest_batches(batches)
    rows: list[VariantStockRow] = []

    for sp in store_products:
        if not sp.is_active:
            continue
        per_sku = resolve_product_stock(sp, ledger, now=now)
        for v in sp.variants:
            rows.append(
                VariantStockRow(
                    store_product_id=sp.store_product_id,
                    store_id=str(sp.store_id),
                    product_id=str(sp.product_id),
                    product_name=sp.product_name,
                    variant_sku=v.sku,
                    mrp=float(v.mrp or 0),
                    selling_price=float(v.selling_price or 0),
                    discount=discount_pct(v.mrp, v.selling_price),
                    stock=per_sku.get(v.sku, 0.0),
                    is_available=bool(v.is_available),
                )
            )
    return rows


def low_stock_rows(rows: Iterable[VariantStockRow], threshold: float = LOW_STOCK_THRESHOLD) -> list[VariantStockRow]:
    return [r for r in rows if r.stock < threshold]


def unit_cost(total_cost: float, quantity: float) -> float:
    return round(safe_div(total_cost, quantity), 2)


def average_cost_per_quantity(lots: Iterable[tuple[float, float]]) -> float:
    """
    Quantity-weighted cost per unit over (total_cost, quantity_purchased) lots.

    This is sum(total_cost) / sum(quantity), not the mean of per-lot unit costs.
    """
    total_cost = 0.0
    total_qty = 0.0
    for cost, qty in lots:
        total_cost += float(cost or 0)
        total_qty += float(qty or 0)
    return unit_cost(total_cost, total_qty)


def batch_lots(batches: Iterable[Batch]) -> list[tuple[float, float]]:
    """(total_cost, quantity_purchased) per batch, costed at cost_price per base unit."""
    return [(b.cost_price * b.initial_quantity, b.initial_quantity) for b in batches]


@dataclass(frozen=True)
class Margin:
    profit_per_unit: float
    margin_pct: float


def variant_margin(selling_price: float, cost_per_qty: float) -> Margin:
    """
    Profit of one sold unit against the batch cost per quantity.

    Margin is expressed on cost; with no known cost it is reported as 0.
    """
    selling = float(selling_price or 0)
    cost = float(cost_per_qty or 0)
    profit = selling - cost
    pct = profit / cost * 100 if cost > 0 else 0.0
    return Margin(round(profit, 2), round(pct, 2))


def product_margins(variants: Iterable[Variant], cost_per_qty: float) -> dict[str, Margin]:
    return {v.sku: variant_margin(v.selling_price, cost_per_qty) for v in variants}


def average_margin_pct(variants: Iterable[Variant], cost_per_qty: float) -> float:
    """Mean margin over a product's variants; 0 when cost is unknown or there are no variants."""
    margins = list(product_margins(variants, cost_per_qty).values())
    if cost_per_qty <= 0 or not margins:
        return 0.0
    return round(sum(m.margin_pct for m in margins) / len(margins), 2)
