from decimal import Decimal

import pytest
from sqlalchemy import func, select

from services.order_service.exceptions import (
    ConfirmationRequired,
    InvalidStatusTransition,
    OrderCreationFailed,
    OrderNotFound,
)
from services.order_service.models import Order, OrderItem
from services.order_service.schemas import OrderCreate, OrderItemCreate, PlaceOrderRequest
from services.order_service.service import PRODUCT_NOT_AVAILABLE, OrderService, order_total
from services.order_service.status import OrderStatus
from services.order_service.workflow import OrderAction, perform_action

from conftest import make_product, shipping_address


def cod_request(*lines, total=None):
    payload = {
        "shipping_address": shipping_address(),
        "payment_method": "cash-on-delivery",
        "items": [
            {"product_id": p.id, "quantity": qty, "price": str(price), "farmer_id": p.user_id}
            for p, qty, price in lines
        ],
    }
    if total is not None:
        payload["total_amount"] = total
    return PlaceOrderRequest.model_validate(payload)


async def count(db, model):
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


def test_order_total_is_exact_to_the_cent():
    lines = [OrderItemCreate(product_id="a", quantity=3, price=Decimal("0.10"))]
    assert order_total(lines) == Decimal("0.30")


async def test_cash_on_delivery_order_end_to_end(db, buyer, farmer, wheat):
    order_id = await OrderService.place_order(db, buyer.id, cod_request((wheat, 2, "7.25"), total="14.50"))

    order = await OrderService.get_order_by_id(db, order_id)
    assert order.status == OrderStatus.PENDING
    assert order.total_amount == Decimal("14.50")
    assert order.payment_method == "cash-on-delivery"
    assert order.buyer.full_name == "Amina Buyer"
    assert len(order.items) == 1

    item = order.items[0]
    assert item.product_id == wheat.id
    assert item.farmer_id == farmer.id
    assert item.quantity == 2
    assert item.price == Decimal("7.25")
    assert item.product_name == "Wheat"


async def test_total_equals_sum_of_items(db, buyer, farmer, wheat):
    beans = await make_product(db, farmer.id, name="Beans", price="2.40", category="Vegetables")
    order_id = await OrderService.place_order(db, buyer.id, cod_request((wheat, 3, "7.25"), (beans, 5, "2.40")))

    order = await OrderService.get_order_by_id(db, order_id)
    assert order.total_amount == sum(i.price * i.quantity for i in order.items)
    assert order.total_amount == Decimal("33.75")


@pytest.mark.parametrize(
    "cart",
    [
        [("0.10", 3)],
        [("19.99", 7)],
        [("0.01", 1), ("0.99", 99)],
        [("1.15", 3), ("2.05", 7), ("0.33", 3)],
        [(f"{n}.{n:02d}", n) for n in range(1, 13)],
    ],
    ids=["dimes", "near-dollar", "pennies", "awkward-cents", "many-lines"],
)
async def test_total_invariant_holds_for_awkward_carts(db, buyer, farmer, cart):
    lines = []
    for index, (price, qty) in enumerate(cart):
        product = await make_product(db, farmer.id, name=f"Crop {index}", price=price)
        lines.append((product, qty, price))
    expected = sum((Decimal(price) * qty for _, qty, price in lines), Decimal("0"))

    order_id = await OrderService.place_order(db, buyer.id, cod_request(*lines, total=str(expected)))

    order = await OrderService.get_order_by_id(db, order_id)
    assert order.total_amount == expected
    assert order.total_amount == sum(i.price * i.quantity for i in order.items)
    assert len(order.items) == len(cart)


async def test_card_payment_method_is_refused(db, buyer, wheat):
    request = cod_request((wheat, 1, "7.25"))
    request.payment_method = "credit-card"

    with pytest.raises(OrderCreationFailed):
        await OrderService.place_order(db, buyer.id, request)
    assert await count(db, Order) == 0


async def test_mismatched_total_is_rejected_without_writing(db, buyer, wheat):
    with pytest.raises(OrderCreationFailed):
        await OrderService.place_order(db, buyer.id, cod_request((wheat, 2, "7.25"), total="10.00"))

    assert await count(db, Order) == 0


async def test_bad_line_rolls_back_the_whole_order(db, buyer, wheat, other_farmer):
    # farmer_id does not own the product: the second line is rejected
    foreign = await make_product(db, other_farmer.id, name="Rice", price="5.00")
    request = cod_request((wheat, 1, "7.25"), (foreign, 1, "5.00"))
    request.items[1].farmer_id = "someone-else"

    with pytest.raises(OrderCreationFailed):
        await OrderService.place_order(db, buyer.id, request)

    assert await count(db, Order) == 0
    assert await count(db, OrderItem) == 0


async def test_unknown_product_fails_cash_order(db, buyer, wheat):
    request = cod_request((wheat, 1, "7.25"))
    request.items[0].product_id = "does-not-exist"
    request.items[0].farmer_id = None

    with pytest.raises(OrderCreationFailed):
        await OrderService.place_order(db, buyer.id, request)
    assert await count(db, Order) == 0


async def test_item_price_is_immutable_after_listing_change(db, buyer, wheat):
    order_id = await OrderService.place_order(db, buyer.id, cod_request((wheat, 2, "7.25")))

    wheat.price = Decimal("9.99")
    await db.commit()

    order = await OrderService.get_order_by_id(db, order_id)
    assert order.items[0].price == Decimal("7.25")
    assert order.total_amount == Decimal("14.50")


async def test_deleted_product_reads_as_not_available(db, buyer, wheat):
    order_id = await OrderService.place_order(db, buyer.id, cod_request((wheat, 1, "7.25")))
    await db.delete(wheat)
    await db.commit()

    order = await OrderService.get_order_by_id(db, order_id)
    assert order.items[0].product_name == PRODUCT_NOT_AVAILABLE


async def test_farmer_sees_only_own_lines(db, buyer, farmer, other_farmer, wheat):
    rice = await make_product(db, other_farmer.id, name="Rice", price="5.00")
    order_id = await OrderService.place_order(db, buyer.id, cod_request((wheat, 2, "7.25"), (rice, 1, "5.00")))

    mine = await OrderService.get_orders_for_farmer(db, farmer.id)
    assert [o.id for o in mine] == [order_id]
    assert [i.product_id for i in mine[0].items] == [wheat.id]
    assert mine[0].farmer_subtotal == Decimal("14.50")
    assert mine[0].total_amount == Decimal("19.50")

    theirs = await OrderService.get_order_for_farmer(db, order_id, other_farmer.id)
    assert [i.product_id for i in theirs.items] == [rice.id]

    stranger = await OrderService.get_orders_for_farmer(db, buyer.id)
    assert stranger == []
    assert await OrderService.get_order_for_farmer(db, order_id, "nobody") is None


async def test_buyer_orders_are_newest_first(db, buyer, wheat):
    first = await OrderService.place_order(db, buyer.id, cod_request((wheat, 1, "7.25")))
    second = await OrderService.place_order(db, buyer.id, cod_request((wheat, 2, "7.25")))

    orders = await OrderService.get_orders_for_user(db, buyer.id)
    assert [o.id for o in orders] == [second, first]


async def test_two_step_creation_used_by_card_payments(db, buyer, farmer, wheat):
    order_id = await OrderService.create_order(
        db,
        OrderCreate(
            user_id=buyer.id,
            total_amount=Decimal("7.25"),
            shipping_address=shipping_address(),
            payment_method="stripe",
        ),
        status=OrderStatus.PAID,
        payment_session_id="cs_1",
    )
    await OrderService.add_order_item(
        db, order_id, OrderItemCreate(product_id=wheat.id, quantity=1, price=Decimal("7.25"), farmer_id=farmer.id)
    )

    order = await OrderService.find_by_payment_session(db, "cs_1")
    assert order.id == order_id
    assert order.status == "paid"
    assert len(order.items) == 1


async def test_duplicate_payment_session_is_a_creation_failure(db, buyer):
    data = OrderCreate(
        user_id=buyer.id,
        total_amount=Decimal("1.00"),
        shipping_address=shipping_address(),
        payment_method="stripe",
    )
    await OrderService.create_order(db, data, status=OrderStatus.PAID, payment_session_id="cs_dup")

    with pytest.raises(OrderCreationFailed):
        await OrderService.create_order(db, data, status=OrderStatus.PAID, payment_session_id="cs_dup")
    assert await count(db, Order) == 1


async def test_add_item_to_missing_order(db, wheat):
    with pytest.raises(OrderNotFound):
        await OrderService.add_order_item(
            db, "missing", OrderItemCreate(product_id=wheat.id, quantity=1, price=Decimal("7.25"))
        )


async def test_status_updates_move_forward_only(db, buyer, wheat):
    order_id = await OrderService.place_order(db, buyer.id, cod_request((wheat, 1, "7.25")))

    order = await OrderService.update_order_status(db, order_id, "processing")
    assert order.status == "processing"

    with pytest.raises(InvalidStatusTransition):
        await OrderService.update_order_status(db, order_id, "pending")

    stamped = order.updated_at
    again = await OrderService.update_order_status(db, order_id, OrderStatus.PROCESSING)
    assert again.status == "processing"
    assert again.updated_at >= stamped


async def test_update_status_of_missing_order(db):
    with pytest.raises(OrderNotFound):
        await OrderService.update_order_status(db, "missing", "processing")


async def test_rejected_order_cannot_be_processed(db, buyer, wheat):
    order_id = await OrderService.place_order(db, buyer.id, cod_request((wheat, 1, "7.25")))

    with pytest.raises(ConfirmationRequired):
        await perform_action(db, order_id, OrderAction.REJECT)

    result = await perform_action(db, order_id, OrderAction.REJECT, confirmed=True)
    assert result.order.status == "cancelled"
    assert result.message == "Order has been rejected and cancelled"

    with pytest.raises(InvalidStatusTransition):
        await OrderService.update_order_status(db, order_id, "processing")

    order = await OrderService.get_order_by_id(db, order_id)
    assert order.status == OrderStatus.CANCELLED


async def test_actions_walk_the_happy_path(db, buyer, wheat):
    order_id = await OrderService.place_order(db, buyer.id, cod_request((wheat, 1, "7.25")))

    for action, expected in (
        (OrderAction.ACCEPT, "processing"),
        (OrderAction.SHIP, "shipped"),
        (OrderAction.DELIVER, "delivered"),
    ):
        result = await perform_action(db, order_id, action)
        assert result.order.status == expected

    # Retried delivery is a no-op
    result = await perform_action(db, order_id, OrderAction.DELIVER)
    assert result.order.status == "delivered"

    with pytest.raises(InvalidStatusTransition):
        await perform_action(db, order_id, OrderAction.SHIP)


async def test_summarize_uses_farmer_subtotal(db, buyer, farmer, other_farmer, wheat):
    rice = await make_product(db, other_farmer.id, name="Rice", price="5.00")
    first = await OrderService.place_order(db, buyer.id, cod_request((wheat, 2, "7.25"), (rice, 1, "5.00")))
    await OrderService.place_order(db, buyer.id, cod_request((wheat, 1, "7.25")))
    await OrderService.update_order_status(db, first, "processing")

    stats = OrderService.summarize_orders(await OrderService.get_orders_for_farmer(db, farmer.id))
    assert stats.total_orders == 2
    assert stats.pending == 1
    assert stats.processing == 1
    assert stats.total_revenue == Decimal("21.75")
