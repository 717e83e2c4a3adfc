"""
Turns cart lines (or lines recovered from a payment session) into order items.

Two modes:

* strict   - used while placing a cash-on-delivery order inside one
             transaction. The first bad line raises and the caller rolls the
             whole order back.
* lenient  - used after a card payment was captured. Every line is committed
             on its own; a bad line is logged and skipped so the buyer still
             gets a confirmation for what could be recorded.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from services.product_service.repository import ProductRepository
from shared.observability.metrics import market_reconciled_items_total

from .exceptions import ReconciliationError
from .models import OrderItem
from .repository import OrderRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReconcileLine:
    product_id: str
    quantity: int
    price: Decimal
    # Declared owner (e.g. carried through payment metadata); checked, never trusted
    farmer_id: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: dict) -> "ReconcileLine":
        product = data.get("product") or {}
        return cls(
            product_id=str(data.get("product_id") or product.get("id")),
            quantity=int(data["quantity"]),
            price=Decimal(str(data.get("price", product.get("price")))),
            farmer_id=data.get("farmer_id") or product.get("farmer_id"),
        )


class OrderItemReconciler:

    @staticmethod
    async def _build_item(db: AsyncSession, order_id: str, line: ReconcileLine) -> OrderItem:
        if line.quantity <= 0:
            raise ReconciliationError(line.product_id, "quantity must be positive")
        if line.price < 0:
            raise ReconciliationError(line.product_id, "price cannot be negative")

        product = await ProductRepository.get_product_by_id(db, line.product_id)
        if product is None:
            raise ReconciliationError(line.product_id, "product not found")

        owner = product.user_id
        if line.farmer_id is not None and line.farmer_id != owner:
            raise ReconciliationError(line.product_id, "declared farmer does not own the product")

        # The line price is what the buyer agreed to; the live listing price is not consulted
        return OrderItem(
            order_id=order_id,
            product_id=line.product_id,
            farmer_id=owner,
            quantity=line.quantity,
            price=line.price,
        )

    @staticmethod
    async def add_line(db: AsyncSession, order_id: str, line: ReconcileLine, commit: bool = True) -> OrderItem:
        item = await OrderItemReconciler._build_item(db, order_id, line)
        return await OrderRepository.add_order_item(db, item, commit=commit)

    @staticmethod
    async def reconcile(
        db: AsyncSession,
        order_id: str,
        lines: Iterable[ReconcileLine],
        strict: bool = False,
    ) -> int:
        """Records every line it can; returns the number of items added."""
        added = 0
        for line in lines:
            if strict:
                await OrderItemReconciler.add_line(db, order_id, line, commit=False)
                added += 1
                market_reconciled_items_total.labels(result="added").inc()
                continue

            try:
                await OrderItemReconciler.add_line(db, order_id, line, commit=True)
            except ReconciliationError as e:
                logger.warning("order_item_skipped", order_id=order_id, product_id=e.product_id, reason=e.reason)
                market_reconciled_items_total.labels(result="skipped").inc()
                continue
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error("order_item_insert_failed", order_id=order_id, product_id=line.product_id, error=str(e))
                market_reconciled_items_total.labels(result="skipped").inc()
                continue

            added += 1
            market_reconciled_items_total.labels(result="added").inc()

        logger.info("order_items_reconciled", order_id=order_id, added=added, strict=strict)
        return added
