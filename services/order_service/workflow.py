"""
Farmer-facing actions on an order.

Each action names the status it moves an order to. The order store checks the
transition itself; this module adds what the farmer dashboard needs on top:
which actions to offer, the confirmation guard for rejecting, and the message
shown after a successful change.
"""
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from .exceptions import ConfirmationRequired, InvalidStatusTransition, OrderNotFound
from .models import Order
from .repository import OrderRepository
from .service import OrderService
from .status import OrderStatus


class OrderAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    SHIP = "ship"
    DELIVER = "deliver"


@dataclass(frozen=True)
class ActionSpec:
    sources: frozenset[OrderStatus]
    target: OrderStatus
    message: str
    requires_confirmation: bool = False


ACTIONS: dict[OrderAction, ActionSpec] = {
    OrderAction.ACCEPT: ActionSpec(
        sources=frozenset({OrderStatus.PENDING, OrderStatus.PAID}),
        target=OrderStatus.PROCESSING,
        message="Order has been accepted and is now being processed",
    ),
    # Irreversible and visible to the buyer
    OrderAction.REJECT: ActionSpec(
        sources=frozenset({OrderStatus.PENDING}),
        target=OrderStatus.CANCELLED,
        message="Order has been rejected and cancelled",
        requires_confirmation=True,
    ),
    OrderAction.SHIP: ActionSpec(
        sources=frozenset({OrderStatus.PROCESSING}),
        target=OrderStatus.SHIPPED,
        message="Order has been marked as shipped",
    ),
    OrderAction.DELIVER: ActionSpec(
        sources=frozenset({OrderStatus.SHIPPED}),
        target=OrderStatus.DELIVERED,
        message="Order has been marked as delivered",
    ),
}


@dataclass(frozen=True)
class ActionResult:
    order: Order
    message: str


def available_actions(status: OrderStatus | str) -> list[OrderAction]:
    """Actions offered for an order in `status`; empty once it is terminal."""
    try:
        current = OrderStatus(status)
    except ValueError:
        return []
    return [action for action, spec in ACTIONS.items() if current in spec.sources]


async def perform_action(
    db: AsyncSession,
    order_id: str,
    action: OrderAction,
    confirmed: bool = False,
) -> ActionResult:
    action = OrderAction(action)
    spec = ACTIONS[action]

    order = await OrderRepository.get_order(db, order_id)
    if not order:
        raise OrderNotFound(order_id)

    # A retried action whose target is already reached is a no-op, not an error
    already_there = order.status == spec.target.value
    if not already_there and OrderStatus(order.status) not in spec.sources:
        raise InvalidStatusTransition(order.status, spec.target.value)

    if spec.requires_confirmation and not confirmed and not already_there:
        raise ConfirmationRequired(f"'{action.value}' must be explicitly confirmed")

    order = await OrderService.update_order_status(db, order_id, spec.target)
    return ActionResult(order=order, message=spec.message)
