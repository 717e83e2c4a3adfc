"""
Order status state machine.

    pending    --accept-->  processing
    pending    --reject-->  cancelled
    paid       --accept-->  processing
    processing --ship-->    shipped
    shipped    --deliver--> delivered

``delivered`` and ``cancelled`` are terminal. Re-applying the current status is
allowed so a retried request is a no-op instead of an error.
"""
from enum import Enum

from .exceptions import InvalidStatusTransition


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.PROCESSING}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)


def can_transition(current: str, target: str) -> bool:
    try:
        current_status, target_status = OrderStatus(current), OrderStatus(target)
    except ValueError:
        return False
    return current_status == target_status or target_status in ALLOWED_TRANSITIONS[current_status]


def ensure_transition(current: str, target: str) -> OrderStatus:
    """Returns the target status, or raises InvalidStatusTransition."""
    if not can_transition(current, target):
        raise InvalidStatusTransition(current, target)
    return OrderStatus(target)
