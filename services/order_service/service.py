import time
from decimal import Decimal
from typing import Iterable, Optional

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from services.auth_service.repository import UserRepository
from services.cart_service.repository import CartRepository
from services.product_service.repository import ProductRepository
from shared.observability.metrics import (
    market_checkout_duration_seconds,
    market_checkout_total,
    market_order_status_transitions_total,
)

from .exceptions import OrderCreationFailed, OrderNotFound, ReconciliationError
from .models import Order
from .reconciler import OrderItemReconciler, ReconcileLine
from .repository import OrderRepository
from .schemas import (
    BuyerInfo,
    FarmerOrderResponse,
    OrderCreate,
    OrderItemCreate,
    OrderItemResponse,
    OrderResponse,
    OrderStats,
    PlaceOrderRequest,
)
from .status import OrderStatus, ensure_transition

logger = structlog.get_logger(__name__)

PRODUCT_NOT_AVAILABLE = "Product Not Available"
CASH_ON_DELIVERY = "cash-on-delivery"


def order_total(lines: Iterable) -> Decimal:
    """Sum of price x quantity over the lines, exact to the cent."""
    return sum((Decimal(line.price) * line.quantity for line in lines), Decimal("0")).quantize(Decimal("0.01"))


class OrderService:

    # --- writes ---

    @staticmethod
    async def create_order(
        db: AsyncSession,
        data: OrderCreate,
        status: OrderStatus = OrderStatus.PENDING,
        payment_session_id: Optional[str] = None,
    ) -> str:
        """Inserts one order row (no items) and returns its id."""
        order = Order(
            user_id=data.user_id,
            total_amount=data.total_amount,
            shipping_address=data.shipping_address.model_dump(by_alias=True),
            payment_method=data.payment_method,
            status=status.value,
            payment_session_id=payment_session_id,
        )
        try:
            order = await OrderRepository.create_order(db, order)
        except IntegrityError as e:
            await db.rollback()
            logger.warning("order_insert_conflict", user_id=data.user_id, payment_session_id=payment_session_id)
            raise OrderCreationFailed("Order could not be created") from e
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("order_insert_failed", user_id=data.user_id, error=str(e))
            raise OrderCreationFailed("Order could not be created") from e

        logger.info("order_created", order_id=order.id, user_id=order.user_id, status=order.status)
        return order.id

    @staticmethod
    async def add_order_item(db: AsyncSession, order_id: str, data: OrderItemCreate):
        order = await OrderRepository.get_order(db, order_id)
        if not order:
            raise OrderNotFound(order_id)

        line = ReconcileLine(
            product_id=data.product_id,
            quantity=data.quantity,
            price=data.price,
            farmer_id=data.farmer_id,
        )
        return await OrderItemReconciler.add_line(db, order_id, line)

    @staticmethod
    async def place_order(db: AsyncSession, buyer_id: str, data: PlaceOrderRequest) -> str:
        """
        Cash-on-delivery checkout. The order row and every order item are
        written in a single transaction: either all of them exist afterwards
        or none does.
        """
        started = time.perf_counter()
        total = order_total(data.items)

        if data.payment_method != CASH_ON_DELIVERY:
            # Card orders only come into existence through a verified payment session
            market_checkout_total.labels(payment_method=data.payment_method, status="failed").inc()
            raise OrderCreationFailed(f"Payment method {data.payment_method} requires a payment session")
        if data.total_amount is not None and Decimal(data.total_amount).quantize(Decimal("0.01")) != total:
            market_checkout_total.labels(payment_method=data.payment_method, status="failed").inc()
            raise OrderCreationFailed("Order total does not match the items in the cart")
        if total <= 0:
            market_checkout_total.labels(payment_method=data.payment_method, status="failed").inc()
            raise OrderCreationFailed("Order total must be greater than zero")

        order = Order(
            user_id=buyer_id,
            total_amount=total,
            shipping_address=data.shipping_address.model_dump(by_alias=True),
            payment_method=data.payment_method,
            status=OrderStatus.PENDING.value,
        )
        lines = [
            ReconcileLine(product_id=line.product_id, quantity=line.quantity, price=line.price, farmer_id=line.farmer_id)
            for line in data.items
        ]

        try:
            await OrderRepository.create_order(db, order, commit=False)
            await OrderItemReconciler.reconcile(db, order.id, lines, strict=True)
            await db.commit()
        except ReconciliationError as e:
            await db.rollback()
            market_checkout_total.labels(payment_method=data.payment_method, status="failed").inc()
            logger.warning("order_placement_rejected", user_id=buyer_id, product_id=e.product_id, reason=e.reason)
            raise OrderCreationFailed(f"Could not place order: {e.reason} ({e.product_id})") from e
        except SQLAlchemyError as e:
            await db.rollback()
            market_checkout_total.labels(payment_method=data.payment_method, status="failed").inc()
            logger.error("order_placement_failed", user_id=buyer_id, error=str(e))
            raise OrderCreationFailed("Order could not be created") from e

        order_id = order.id
        try:
            await CartRepository.clear_cart(db, buyer_id)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("cart_clear_failed", order_id=order_id, user_id=buyer_id, error=str(e))

        market_checkout_total.labels(payment_method=data.payment_method, status="success").inc()
        market_checkout_duration_seconds.observe(time.perf_counter() - started)
        logger.info("order_placed", order_id=order_id, user_id=buyer_id, total=str(total), items=len(lines))
        return order_id

    @staticmethod
    async def update_order_status(db: AsyncSession, order_id: str, new_status: OrderStatus | str) -> Order:
        """
        Applies a status change if the workflow allows it. Always stamps
        updated_at, also when the order already holds the target status.
        """
        order = await OrderRepository.get_order(db, order_id)
        if not order:
            raise OrderNotFound(order_id)

        previous = order.status
        target = ensure_transition(previous, OrderStatus(new_status).value)

        try:
            await OrderRepository.update_status(db, order, target.value)
        except SQLAlchemyError:
            await db.rollback()
            logger.error("order_status_update_failed", order_id=order_id, target=target.value)
            raise

        if previous != target.value:
            market_order_status_transitions_total.labels(from_status=previous, to_status=target.value).inc()
        logger.info("order_status_updated", order_id=order_id, from_status=previous, to_status=target.value)
        return await OrderRepository.get_order(db, order_id)

    # --- reads ---

    @staticmethod
    async def _product_names(db: AsyncSession, orders) -> dict[str, str]:
        product_ids = [item.product_id for order in orders for item in order.items]
        try:
            products = await ProductRepository.get_products_by_ids(db, product_ids)
        except SQLAlchemyError as e:
            # Names are decoration; a failed lookup must not fail the order read
            logger.warning("order_product_lookup_failed", error=str(e))
            return {}
        return {pid: p.name for pid, p in products.items()}

    @staticmethod
    async def _buyer_names(db: AsyncSession, orders) -> dict[str, Optional[str]]:
        try:
            return await UserRepository.get_display_names(db, [order.user_id for order in orders])
        except SQLAlchemyError as e:
            logger.warning("order_buyer_lookup_failed", error=str(e))
            return {}

    @staticmethod
    def _order_fields(order: Order, names: dict, buyers: dict, items) -> dict:
        return dict(
            id=order.id,
            user_id=order.user_id,
            status=order.status,
            total_amount=order.total_amount,
            shipping_address=order.shipping_address,
            payment_method=order.payment_method,
            created_at=order.created_at,
            updated_at=order.updated_at,
            buyer=BuyerInfo(id=order.user_id, full_name=buyers.get(order.user_id)),
            items=[
                OrderItemResponse(
                    id=item.id,
                    order_id=item.order_id,
                    product_id=item.product_id,
                    farmer_id=item.farmer_id,
                    quantity=item.quantity,
                    price=item.price,
                    product_name=names.get(item.product_id, PRODUCT_NOT_AVAILABLE),
                )
                for item in sorted(items, key=lambda i: i.created_at)
            ],
        )

    @staticmethod
    def _to_response(order: Order, names: dict, buyers: dict) -> OrderResponse:
        return OrderResponse(**OrderService._order_fields(order, names, buyers, order.items))

    @staticmethod
    async def get_order_by_id(db: AsyncSession, order_id: str) -> Optional[OrderResponse]:
        order = await OrderRepository.get_order(db, order_id)
        if not order:
            return None
        names = await OrderService._product_names(db, [order])
        buyers = await OrderService._buyer_names(db, [order])
        return OrderService._to_response(order, names, buyers)

    @staticmethod
    async def get_orders_for_user(db: AsyncSession, user_id: str) -> list[OrderResponse]:
        orders = await OrderRepository.get_orders_for_user(db, user_id)
        names = await OrderService._product_names(db, orders)
        buyers = await OrderService._buyer_names(db, orders)
        return [OrderService._to_response(order, names, buyers) for order in orders]

    @staticmethod
    def _farmer_view(order: Order, farmer_id: str, names: dict, buyers: dict) -> FarmerOrderResponse:
        # Another farmer's lines (products, prices) never leave this function
        own_items = [item for item in order.items if item.farmer_id == farmer_id]
        return FarmerOrderResponse(
            **OrderService._order_fields(order, names, buyers, own_items),
            farmer_subtotal=order_total(own_items),
        )

    @staticmethod
    async def get_orders_for_farmer(db: AsyncSession, farmer_id: str) -> list[FarmerOrderResponse]:
        orders = await OrderRepository.get_orders_for_farmer(db, farmer_id)
        names = await OrderService._product_names(db, orders)
        buyers = await OrderService._buyer_names(db, orders)
        return [OrderService._farmer_view(order, farmer_id, names, buyers) for order in orders]

    @staticmethod
    async def get_order_for_farmer(db: AsyncSession, order_id: str, farmer_id: str) -> Optional[FarmerOrderResponse]:
        order = await OrderRepository.get_order(db, order_id)
        if not order or not any(item.farmer_id == farmer_id for item in order.items):
            return None
        names = await OrderService._product_names(db, [order])
        buyers = await OrderService._buyer_names(db, [order])
        return OrderService._farmer_view(order, farmer_id, names, buyers)

    @staticmethod
    async def get_all_orders(db: AsyncSession) -> list[OrderResponse]:
        orders = await OrderRepository.get_all_orders(db)
        names = await OrderService._product_names(db, orders)
        buyers = await OrderService._buyer_names(db, orders)
        return [OrderService._to_response(order, names, buyers) for order in orders]

    @staticmethod
    async def find_by_payment_session(db: AsyncSession, session_id: str) -> Optional[Order]:
        return await OrderRepository.find_by_payment_session(db, session_id)

    @staticmethod
    async def farmer_has_items(db: AsyncSession, order_id: str, farmer_id: str) -> bool:
        return await OrderRepository.farmer_has_items(db, order_id, farmer_id)

    @staticmethod
    def summarize_orders(orders: Iterable[OrderResponse]) -> OrderStats:
        """Dashboard counters per status plus revenue over the given orders."""
        stats = OrderStats()
        for order in orders:
            stats.total_orders += 1
            status = OrderStatus(order.status).value
            setattr(stats, status, getattr(stats, status) + 1)
            revenue = getattr(order, "farmer_subtotal", None)
            stats.total_revenue += order.total_amount if revenue is None else revenue
        return stats
