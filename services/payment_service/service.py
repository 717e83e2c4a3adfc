"""
Card checkout: hosted payment session creation and the verification handler
that materializes the order once the provider confirms the payment.

The verification handler runs independently of the buyer's browser (the tab
may be gone by then), so it alone is responsible for creating card orders.
Every step after the order row exists is isolated: a failure while recording
items or clearing the cart never removes an order the buyer has paid for.
"""
import json
from decimal import Decimal
from typing import Optional

import structlog
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from services.cart_service.repository import CartRepository
from services.order_service.exceptions import OrderCreationFailed
from services.order_service.reconciler import OrderItemReconciler, ReconcileLine
from services.order_service.schemas import OrderCreate, PlaceOrderRequest
from services.order_service.service import OrderService, order_total
from services.order_service.status import OrderStatus
from services.product_service.repository import ProductRepository
from shared.config.settings import PAYMENT_CURRENCY
from shared.observability.metrics import market_checkout_total, market_payment_verifications_total

from .models import Payment
from .provider import CheckoutSession, PaymentProviderError, StripeCheckoutProvider
from .repository import PaymentRepository
from .schemas import CheckoutSessionResponse, VerifyPaymentResponse

logger = structlog.get_logger(__name__)

# Provider limit on a single metadata value
METADATA_VALUE_LIMIT = 500
CART_KEY = "cart_items"


class CheckoutRejected(ValueError):
    """The order data cannot be turned into a payment session."""


class PaymentVerificationError(Exception):
    """Payment was captured but the session carries no usable order details."""


def chunk_metadata(key: str, text: str, size: int = METADATA_VALUE_LIMIT) -> dict[str, str]:
    """Spreads a long value over key_0, key_1, ... plus a key_chunks counter."""
    chunks = [text[i:i + size] for i in range(0, len(text), size)] or [""]
    metadata = {f"{key}_{index}": chunk for index, chunk in enumerate(chunks)}
    metadata[f"{key}_chunks"] = str(len(chunks))
    return metadata


def read_chunked_metadata(metadata: dict[str, str], key: str) -> Optional[str]:
    count = metadata.get(f"{key}_chunks")
    if count is None:
        return None
    return "".join(metadata.get(f"{key}_{index}", "") for index in range(int(count)))


def _cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1")))


class PaymentService:

    # --- session creation ---

    @staticmethod
    async def create_checkout_session(
        db: AsyncSession,
        provider: StripeCheckoutProvider,
        buyer_id: str,
        order_data: PlaceOrderRequest,
        origin: str,
    ) -> CheckoutSessionResponse:
        total = order_total(order_data.items)
        if order_data.total_amount is not None and Decimal(order_data.total_amount).quantize(Decimal("0.01")) != total:
            raise CheckoutRejected("Order total does not match the items in the cart")

        products = await ProductRepository.get_products_by_ids(db, [line.product_id for line in order_data.items])
        line_items, snapshot = [], []
        for line in order_data.items:
            product = products.get(line.product_id)
            if product is None:
                raise CheckoutRejected(f"Product {line.product_id} is no longer available")

            # Product and owner ids ride along so the order can be rebuilt without guessing
            line_items.append({
                "price_data": {
                    "currency": PAYMENT_CURRENCY,
                    "product_data": {
                        "name": product.name,
                        "metadata": {"product_id": product.id, "farmer_id": product.user_id},
                    },
                    "unit_amount": _cents(line.price),
                },
                "quantity": line.quantity,
            })
            snapshot.append({
                "product_id": product.id,
                "farmer_id": product.user_id,
                "quantity": line.quantity,
                "price": str(line.price),
            })

        order_details = json.dumps({
            "user_id": buyer_id,
            "shipping_address": order_data.shipping_address.model_dump(by_alias=True),
            "payment_method": order_data.payment_method,
            "total_amount": str(total),
        }, separators=(",", ":"))

        metadata = chunk_metadata("order_details", order_details)
        metadata.update(chunk_metadata(CART_KEY, json.dumps(snapshot, separators=(",", ":"))))

        origin = origin.rstrip("/")
        session = await provider.create_session(
            line_items=line_items,
            metadata=metadata,
            success_url=f"{origin}/order-confirmation?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{origin}/checkout?canceled=true",
        )

        try:
            await PaymentRepository.create_payment(
                db,
                Payment(session_id=session.id, user_id=buyer_id, amount=total, currency=PAYMENT_CURRENCY),
            )
        except SQLAlchemyError as e:
            await db.rollback()
            logger.warning("payment_ledger_write_failed", session_id=session.id, error=str(e))

        logger.info("checkout_session_created", session_id=session.id, user_id=buyer_id, total=str(total))
        return CheckoutSessionResponse(url=session.url, session_id=session.id)

    # --- verification ---

    @staticmethod
    def _order_details(session: CheckoutSession) -> OrderCreate:
        try:
            raw = read_chunked_metadata(session.metadata, "order_details")
            if raw is None:
                raw = session.metadata.get("order_details", "{}")
            details = json.loads(raw)
            return OrderCreate(
                user_id=details["user_id"],
                total_amount=details["total_amount"],
                shipping_address=details["shipping_address"],
                payment_method="stripe",
            )
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            raise PaymentVerificationError("Payment session carries no usable order details") from e

    @staticmethod
    def _snapshot_lines(session: CheckoutSession) -> Optional[list[ReconcileLine]]:
        """Lines from the cart snapshot in the session metadata; None when absent or unreadable."""
        try:
            raw = read_chunked_metadata(session.metadata, CART_KEY)
            entries = None if raw is None else json.loads(raw)
        except ValueError:
            logger.error("cart_snapshot_unreadable", session_id=session.id)
            return None
        if entries is None:
            return None
        if not isinstance(entries, list):
            logger.error("cart_snapshot_unreadable", session_id=session.id)
            return None

        lines = []
        for entry in entries:
            try:
                lines.append(ReconcileLine.from_mapping(entry))
            except (AttributeError, KeyError, TypeError, ValueError, ArithmeticError):
                logger.warning("cart_snapshot_line_unreadable", session_id=session.id, entry=entry)
        return lines

    @staticmethod
    async def _recover_lines(provider: StripeCheckoutProvider, session: CheckoutSession) -> list[ReconcileLine]:
        lines = PaymentService._snapshot_lines(session)
        if lines is not None:
            return lines

        # No usable snapshot: fall back to the provider's own record of the purchase
        try:
            purchased = await provider.list_line_items(session.id)
        except PaymentProviderError as e:
            logger.error("line_items_unavailable", session_id=session.id, error=e.message)
            return []

        lines = []
        for entry in purchased:
            price = entry.get("price") or {}
            product = price.get("product")
            product_meta = product.get("metadata", {}) if isinstance(product, dict) else {}
            product_id = product_meta.get("product_id")
            if not product_id or price.get("unit_amount") is None:
                # Lines without our product reference cannot be attributed; never guess by name
                logger.warning("line_item_unattributable", session_id=session.id, description=entry.get("description"))
                continue
            lines.append(ReconcileLine(
                product_id=product_id,
                quantity=int(entry.get("quantity") or 0),
                price=Decimal(price["unit_amount"]) / 100,
                farmer_id=product_meta.get("farmer_id"),
            ))
        return lines

    @staticmethod
    async def _record(db: AsyncSession, session_id: str, status: str, user_id: str, amount, order_id=None):
        try:
            await PaymentRepository.record_outcome(db, session_id, status, user_id, amount, order_id)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.warning("payment_ledger_write_failed", session_id=session_id, error=str(e))

    @staticmethod
    async def verify_payment(
        db: AsyncSession,
        provider: StripeCheckoutProvider,
        session_id: str,
    ) -> VerifyPaymentResponse:
        try:
            session = await provider.retrieve_session(session_id)
        except PaymentProviderError:
            market_payment_verifications_total.labels(result="error").inc()
            raise

        if session.payment_status != "paid":
            # Unconfirmed payment: nothing is materialized
            logger.info("payment_not_completed", session_id=session_id, payment_status=session.payment_status)
            market_payment_verifications_total.labels(result="unpaid").inc()
            ledger = await PaymentRepository.get_by_session(db, session_id)
            if ledger is not None:
                await PaymentService._record(db, session_id, "unpaid", ledger.user_id, ledger.amount)
            return VerifyPaymentResponse(success=False, message="Payment not completed")

        # Redelivered confirmation: the order already exists
        existing = await OrderService.find_by_payment_session(db, session_id)
        if existing is not None:
            market_payment_verifications_total.labels(result="existing").inc()
            logger.info("payment_already_materialized", session_id=session_id, order_id=existing.id)
            return VerifyPaymentResponse(success=True, order_id=existing.id)

        details = PaymentService._order_details(session)

        try:
            order_id = await OrderService.create_order(
                db, details, status=OrderStatus.PAID, payment_session_id=session_id
            )
        except OrderCreationFailed:
            # Lost a race with a concurrent verification of the same session
            existing = await OrderService.find_by_payment_session(db, session_id)
            if existing is None:
                market_payment_verifications_total.labels(result="error").inc()
                raise
            market_payment_verifications_total.labels(result="existing").inc()
            return VerifyPaymentResponse(success=True, order_id=existing.id)

        lines = await PaymentService._recover_lines(provider, session)
        try:
            added = await OrderItemReconciler.reconcile(db, order_id, lines, strict=False)
        except SQLAlchemyError as e:
            await db.rollback()
            added = 0
            logger.error("order_items_reconcile_failed", order_id=order_id, error=str(e))
        if added < len(lines) or not lines:
            logger.warning("order_items_incomplete", order_id=order_id, expected=len(lines), added=added)

        try:
            await CartRepository.clear_cart(db, details.user_id)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("cart_clear_failed", user_id=details.user_id, error=str(e))

        await PaymentService._record(db, session_id, "paid", details.user_id, details.total_amount, order_id)

        market_payment_verifications_total.labels(result="created").inc()
        market_checkout_total.labels(payment_method="stripe", status="success").inc()
        logger.info("payment_verified", session_id=session_id, order_id=order_id, items=added)
        return VerifyPaymentResponse(success=True, order_id=order_id)
