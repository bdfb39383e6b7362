"""
Order fulfillment state machine.

Orders move one step at a time along ``ORDER_FLOW``. Any non-terminal order may
also be cancelled (with a reason) or refunded. Guards keyed by the target
status decide whether a step is currently possible; they never raise, they
return ``Blocked`` with a reason code the UI can act on.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Union

PENDING = "pending"
CONFIRMED = "confirmed"
PREPARING = "preparing"
READY = "ready"
OUT_FOR_DELIVERY = "out_for_delivery"
DELIVERED = "delivered"
CANCELLED = "cancelled"
REFUNDED = "refunded"

ORDER_FLOW = (PENDING, CONFIRMED, PREPARING, READY, OUT_FOR_DELIVERY, DELIVERED)
SIDE_STATES = (CANCELLED, REFUNDED)
ALL_STATUSES = ORDER_FLOW + SIDE_STATES
TERMINAL = frozenset({DELIVERED, CANCELLED, REFUNDED})

STATUS_LABELS = {
    PENDING: "Pending",
    CONFIRMED: "Confirmed",
    PREPARING: "Preparing",
    READY: "Ready",
    OUT_FOR_DELIVERY: "Out for Delivery",
    DELIVERED: "Delivered",
    CANCELLED: "Cancelled",
    REFUNDED: "Refunded",
}

PAYMENT_METHODS = ("cod", "online", "wallet")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")

CANCEL_REASONS = {
    "customer_request": "Customer Request",
    "out_of_stock": "Out of Stock",
    "payment_failed": "Payment Failed",
    "delivery_issue": "Delivery Issue",
    "duplicate_order": "Duplicate Order",
    "fraudulent": "Fraudulent Order",
    "other": "Other",
}

# Block reason codes
PAYMENT_REQUIRED = "payment_required"
PARTNER_REQUIRED = "partner_required"
REASON_REQUIRED = "reason_required"
OUT_OF_SEQUENCE = "out_of_sequence"
TERMINAL_STATE = "terminal_state"
UNKNOWN_STATUS = "unknown_status"
NO_PENDING_PAYMENT = "no_pending_payment"
PARTNER_NOT_SELECTED = "partner_not_selected"


@dataclass(frozen=True)
class OrderSnapshot:
    order_id: int
    status: str
    payment_method: str = "cod"
    payment_status: str = "pending"
    delivery_partner_id: Optional[int] = None
    total_amount: float = 0.0
    order_number: str = ""
    delivery_partner_name: Optional[str] = None
    cancel_reason: Optional[str] = None


@dataclass(frozen=True)
class Allowed:
    target: str


@dataclass(frozen=True)
class Blocked:
    target: str
    reason: str
    message: str


Decision = Union[Allowed, Blocked]


def _build_transitions() -> dict[str, frozenset[str]]:
    table: dict[str, frozenset[str]] = {}
    for i, status in enumerate(ORDER_FLOW):
        if status in TERMINAL:
            table[status] = frozenset()
        else:
            table[status] = frozenset({ORDER_FLOW[i + 1], *SIDE_STATES})
    for status in SIDE_STATES:
        table[status] = frozenset()
    return table


TRANSITIONS = _build_transitions()


def is_terminal(status: str) -> bool:
    return status in TERMINAL


def next_status(status: str) -> Optional[str]:
    if status not in ORDER_FLOW or is_terminal(status):
        return None
    return ORDER_FLOW[ORDER_FLOW.index(status) + 1]


def allowed_targets(status: str) -> frozenset[str]:
    return TRANSITIONS.get(status, frozenset())


def cancel_reason(choice: Optional[str], custom_text: Optional[str] = None) -> str:
    """Final cancellation reason: the enumerated code, or the trimmed free text for 'other'."""
    choice = (choice or "").strip()
    if choice == "other":
        return (custom_text or "").strip()
    return choice


def needs_payment_collection(order: OrderSnapshot) -> bool:
    return (
        order.payment_method == "cod"
        and order.payment_status == "pending"
        and order.status in (READY, OUT_FOR_DELIVERY)
    )


def can_assign_partner(order: OrderSnapshot) -> bool:
    return order.status in (CONFIRMED, PREPARING, READY) and order.delivery_partner_id is None


def _guard_delivered(order: OrderSnapshot, reason: Optional[str]) -> Optional[Blocked]:
    if order.payment_method == "cod" and order.payment_status == "pending":
        return Blocked(
            DELIVERED,
            PAYMENT_REQUIRED,
            "Please collect COD payment before marking order as delivered.",
        )
    return None


def _guard_out_for_delivery(order: OrderSnapshot, reason: Optional[str]) -> Optional[Blocked]:
    if order.delivery_partner_id is None:
        return Blocked(
            OUT_FOR_DELIVERY,
            PARTNER_REQUIRED,
            'Please assign a delivery partner before marking order as "Out for Delivery".',
        )
    return None


def _guard_cancelled(order: OrderSnapshot, reason: Optional[str]) -> Optional[Blocked]:
    if not (reason or "").strip():
        return Blocked(CANCELLED, REASON_REQUIRED, "Please provide a reason for cancellation.")
    return None


GUARDS: dict[str, Callable[[OrderSnapshot, Optional[str]], Optional[Blocked]]] = {
    DELIVERED: _guard_delivered,
    OUT_FOR_DELIVERY: _guard_out_for_delivery,
    CANCELLED: _guard_cancelled,
}


def check_transition(order: OrderSnapshot, target: str, reason: Optional[str] = None) -> Decision:
    for status in (order.status, target):
        if status not in ALL_STATUSES:
            return Blocked(target, UNKNOWN_STATUS, f"Unknown order status: {status}.")
    if is_terminal(order.status):
        return Blocked(
            target, TERMINAL_STATE, f"Order is already {STATUS_LABELS[order.status].lower()} and cannot change."
        )
    if target not in allowed_targets(order.status):
        return Blocked(
            target,
            OUT_OF_SEQUENCE,
            f"Cannot move from {STATUS_LABELS[order.status]} to {STATUS_LABELS[target]}; "
            f"next step is {STATUS_LABELS[next_status(order.status)]}.",
        )

    guard = GUARDS.get(target)
    if guard is not None:
        blocked = guard(order, reason)
        if blocked is not None:
            return blocked
    return Allowed(target)
