from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from admin_core.db import q, x
from admin_core.services.order_flow import (
    CANCELLED,
    CONFIRMED,
    OUT_FOR_DELIVERY,
    PAYMENT_METHODS,
    PENDING,
    PREPARING,
    READY,
    REFUNDED,
    STATUS_LABELS,
    Blocked,
    OrderSnapshot,
    check_transition,
)
from admin_core.utils import iso_now

logger = logging.getLogger(__name__)

PARTNER_ASSIGNABLE = (CONFIRMED, PREPARING, READY)


@dataclass(frozen=True)
class ServiceResponse:
    success: bool
    message: str = ""
    order: Optional[OrderSnapshot] = None


_ORDER_SELECT = """
    SELECT o.*, dp.name AS delivery_partner_name, s.name AS store_name
    FROM orders o
    LEFT JOIN delivery_partners dp ON dp.id = o.delivery_partner_id
    LEFT JOIN stores s ON s.id = o.store_id
"""


def _snapshot(row) -> OrderSnapshot:
    partner = row["delivery_partner_id"]
    return OrderSnapshot(
        order_id=int(row["id"]),
        order_number=str(row["order_number"]),
        status=str(row["status"]),
        payment_method=str(row["payment_method"]),
        payment_status=str(row["payment_status"]),
        delivery_partner_id=int(partner) if partner is not None else None,
        delivery_partner_name=row["delivery_partner_name"],
        total_amount=float(row["total_amount"] or 0),
        cancel_reason=row["cancel_reason"],
    )


def get_order(conn, order_id: int) -> Optional[OrderSnapshot]:
    rows = q(conn, _ORDER_SELECT + " WHERE o.id=?", (int(order_id),))
    return _snapshot(rows[0]) if rows else None


def list_orders(conn, statuses: Optional[Iterable[str]] = None):
    sql = _ORDER_SELECT
    params: tuple = ()
    if statuses:
        statuses = tuple(statuses)
        sql += f" WHERE o.status IN ({','.join('?' for _ in statuses)})"
        params = statuses
    sql += " ORDER BY o.id DESC"
    return q(conn, sql, params)


def order_history(conn, order_id: int):
    return q(
        conn,
        "SELECT ts, from_status, to_status, reason FROM order_status_history WHERE order_id=? ORDER BY id",
        (int(order_id),),
    )


def list_delivery_partners(conn, *, active_only: bool = True):
    if active_only:
        return q(conn, "SELECT * FROM delivery_partners WHERE is_active=1 ORDER BY name")
    return q(conn, "SELECT * FROM delivery_partners ORDER BY name")


def create_delivery_partner(conn, *, name: str, phone: Optional[str] = None) -> int:
    name = (name or "").strip()
    if not name:
        raise ValueError("Partner name is required.")
    return x(conn, "INSERT INTO delivery_partners (name, phone) VALUES (?, ?)", (name, (phone or "").strip() or None))


def create_order(
    conn,
    *,
    order_number: str,
    total_amount: float,
    payment_method: str = "cod",
    payment_status: str = "pending",
    store_id: Optional[int] = None,
    customer: Optional[str] = None,
) -> int:
    if not order_number:
        raise ValueError("Order number is required.")
    if payment_method not in PAYMENT_METHODS:
        raise ValueError(f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}.")
    try:
        total = float(total_amount)
    except (TypeError, ValueError):
        raise ValueError("Order total must be a number.")
    if total < 0:
        raise ValueError("Order total cannot be negative.")

    ts = iso_now()
    with conn:
        cur = conn.execute(
            """
            INSERT INTO orders (order_number, store_id, customer, status, payment_method, payment_status,
                                total_amount, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (order_number, store_id, customer, PENDING, payment_method, payment_status, total, ts, ts),
        )
        order_id = int(cur.lastrowid)
        _record_history(conn, order_id, None, PENDING, None)
    return order_id


def _record_history(conn, order_id: int, from_status: Optional[str], to_status: str, reason: Optional[str]) -> None:
    # Runs inside the caller's transaction; no commit here.
    conn.execute(
        "INSERT INTO order_status_history (order_id, from_status, to_status, reason, ts) VALUES (?, ?, ?, ?, ?)",
        (int(order_id), from_status, to_status, reason, iso_now()),
    )


def update_order_status(conn, order_id: int, new_status: str, reason: Optional[str] = None) -> ServiceResponse:
    """
    Apply a status change after re-checking the sequence and guards against stored state.

    The returned order is the canonical post-update state.
    """
    order = get_order(conn, order_id)
    if order is None:
        return ServiceResponse(False, "Order not found.")

    reason = (reason or "").strip() or None
    decision = check_transition(order, new_status, reason)
    if isinstance(decision, Blocked):
        logger.warning("Order %s: %s -> %s rejected (%s)", order.order_number, order.status, new_status, decision.reason)
        return ServiceResponse(False, decision.message, order)

    payment_status = order.payment_status
    if new_status == REFUNDED and payment_status == "paid":
        payment_status = "refunded"

    with conn:
        conn.execute(
            """
            UPDATE orders
            SET status=?, payment_status=?, cancel_reason=COALESCE(?, cancel_reason), updated_at=?
            WHERE id=?
            """,
            (new_status, payment_status, reason if new_status == CANCELLED else None, iso_now(), int(order_id)),
        )
        _record_history(conn, order_id, order.status, new_status, reason)
    logger.info("Order %s: %s -> %s", order.order_number, order.status, new_status)
    return ServiceResponse(
        True, f"Order {order.order_number} status updated to {STATUS_LABELS[new_status]}", get_order(conn, order_id)
    )


def collect_payment(conn, order_id: int, notes: Optional[str] = None) -> ServiceResponse:
    order = get_order(conn, order_id)
    if order is None:
        return ServiceResponse(False, "Order not found.")
    if order.payment_method != "cod":
        return ServiceResponse(False, "Payment collection applies to COD orders only.", order)
    if order.payment_status == "paid":
        return ServiceResponse(False, "Payment has already been collected for this order.", order)
    if order.status in (CANCELLED, REFUNDED):
        return ServiceResponse(False, f"Order is {STATUS_LABELS[order.status].lower()}; payment cannot be collected.", order)

    x(
        conn,
        "UPDATE orders SET payment_status='paid', payment_notes=?, updated_at=? WHERE id=?",
        ((notes or "").strip() or None, iso_now(), int(order_id)),
    )
    logger.info("Order %s: COD payment of %.2f collected", order.order_number, order.total_amount)
    return ServiceResponse(
        True,
        f"Payment of {order.total_amount:.2f} collected successfully for order {order.order_number}",
        get_order(conn, order_id),
    )


def assign_delivery_partner(conn, order_id: int, partner_id: int) -> ServiceResponse:
    """
    Attach a delivery partner. An order that is already 'ready' is dispatched
    immediately, so the returned status may be 'out_for_delivery'.
    """
    order = get_order(conn, order_id)
    if order is None:
        return ServiceResponse(False, "Order not found.")
    if partner_id is None or str(partner_id).strip() == "":
        return ServiceResponse(False, "Please select a delivery partner.", order)

    partner = q(conn, "SELECT id, name FROM delivery_partners WHERE id=? AND is_active=1", (int(partner_id),))
    if not partner:
        return ServiceResponse(False, "Delivery partner not found or inactive.", order)
    if order.status not in PARTNER_ASSIGNABLE:
        return ServiceResponse(
            False,
            f"Cannot assign a delivery partner while the order is {STATUS_LABELS.get(order.status, order.status)}.",
            order,
        )

    dispatch = order.status == READY
    with conn:
        conn.execute(
            "UPDATE orders SET delivery_partner_id=?, status=?, updated_at=? WHERE id=?",
            (int(partner_id), OUT_FOR_DELIVERY if dispatch else order.status, iso_now(), int(order_id)),
        )
        if dispatch:
            _record_history(conn, order_id, READY, OUT_FOR_DELIVERY, "Delivery partner assigned")

    logger.info("Order %s: delivery partner %s assigned", order.order_number, partner[0]["name"])
    if dispatch:
        logger.info("Order %s: %s -> %s on dispatch", order.order_number, READY, OUT_FOR_DELIVERY)

    return ServiceResponse(
        True, f"Delivery partner assigned successfully for order {order.order_number}", get_order(conn, order_id)
    )
