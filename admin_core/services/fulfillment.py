"""
Operator-side requests against the order service.

Every request ends in one of four outcomes:

* ``ok``        the service accepted it; ``result.order`` is the canonical order it returned
* ``blocked``   a local guard failed; the service was not contacted
* ``rejected``  the service refused; its message is passed through unchanged
* ``error``     storage/transport failure; a generic message, safe to retry

Anything but ``ok`` hands back the caller's snapshot untouched.
"""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, MutableSet, Optional

from admin_core.services import orders
from admin_core.services.order_flow import (
    NO_PENDING_PAYMENT,
    PARTNER_NOT_SELECTED,
    Blocked,
    OrderSnapshot,
    check_transition,
)

logger = logging.getLogger(__name__)

OK = "ok"
BLOCKED = "blocked"
REJECTED = "rejected"
ERROR = "error"

GENERIC_ERROR = "Could not reach the order service. Please try again."

# Orders with a request outstanding, for callers that do not keep their own registry.
_IN_FLIGHT: set = set()


class OrderBusyError(RuntimeError):
    """Another request for the same order is still in flight."""


@dataclass(frozen=True)
class ActionResult:
    outcome: str
    message: str
    order: Optional[OrderSnapshot]
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == OK


@contextmanager
def in_flight(registry: MutableSet, order_id: int) -> Iterator[None]:
    if order_id in registry:
        raise OrderBusyError(f"An update for order {order_id} is already in progress.")
    registry.add(order_id)
    try:
        yield
    finally:
        registry.discard(order_id)


def _call(order: OrderSnapshot, fn: Callable[[], "orders.ServiceResponse"], action: str) -> ActionResult:
    try:
        resp = fn()
    except sqlite3.Error:
        logger.exception("Order %s: %s failed", order.order_number or order.order_id, action)
        return ActionResult(ERROR, GENERIC_ERROR, order)

    if not resp.success:
        return ActionResult(REJECTED, resp.message or f"Failed to {action}.", order)
    return ActionResult(OK, resp.message, resp.order or order)


def request_status_change(
    conn,
    order: OrderSnapshot,
    target: str,
    reason: Optional[str] = None,
    *,
    registry: Optional[MutableSet] = None,
) -> ActionResult:
    decision = check_transition(order, target, reason)
    if isinstance(decision, Blocked):
        return ActionResult(BLOCKED, decision.message, order, reason=decision.reason)

    with in_flight(registry if registry is not None else _IN_FLIGHT, order.order_id):
        return _call(order, lambda: orders.update_order_status(conn, order.order_id, target, reason), "update status")


def request_payment_collection(
    conn,
    order: OrderSnapshot,
    notes: Optional[str] = None,
    *,
    registry: Optional[MutableSet] = None,
) -> ActionResult:
    if order.payment_method != "cod" or order.payment_status != "pending":
        return ActionResult(BLOCKED, "This order has no pending COD payment.", order, reason=NO_PENDING_PAYMENT)

    with in_flight(registry if registry is not None else _IN_FLIGHT, order.order_id):
        return _call(order, lambda: orders.collect_payment(conn, order.order_id, notes), "collect payment")


def request_partner_assignment(
    conn,
    order: OrderSnapshot,
    partner_id: Optional[int],
    *,
    registry: Optional[MutableSet] = None,
) -> ActionResult:
    if partner_id is None or str(partner_id).strip() == "":
        return ActionResult(BLOCKED, "Please select a delivery partner.", order, reason=PARTNER_NOT_SELECTED)

    with in_flight(registry if registry is not None else _IN_FLIGHT, order.order_id):
        return _call(
            order,
            lambda: orders.assign_delivery_partner(conn, order.order_id, int(partner_id)),
            "assign delivery partner",
        )
