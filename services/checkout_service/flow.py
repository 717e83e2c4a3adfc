"""
Buyer-side checkout flow.

    FORM -> REVIEW -> SUBMITTING_COD -> DONE
                   -> REDIRECTING_TO_PROVIDER ... RETURNED -> VERIFYING -> DONE

The cart is only cleared once an order is confirmed. Network and validation
failures leave it untouched and put the flow back where the buyer can retry.
"""
import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog

from services.cart_service.cart import Cart
from shared.config.settings import CHECKOUT_SESSION_TIMEOUT_SECONDS

from .client import MarketplaceAPIError, MarketplaceClient

logger = structlog.get_logger(__name__)

CASH_ON_DELIVERY = "cash-on-delivery"
CARD = "credit-card"
CHECKOUT_METHODS = (CARD, CASH_ON_DELIVERY)

# (wire name, attribute name, label)
SHIPPING_FIELDS = (
    ("fullName", "full_name", "Full name"),
    ("address", "address", "Address"),
    ("city", "city", "City"),
    ("state", "state", "State"),
    ("zipCode", "zip_code", "ZIP code"),
    ("country", "country", "Country"),
    ("phone", "phone", "Phone number"),
)
MIN_PHONE_DIGITS = 10


class CheckoutStep(str, Enum):
    FORM = "form"
    REVIEW = "review"
    SUBMITTING_COD = "submitting_cod"
    REDIRECTING_TO_PROVIDER = "redirecting_to_provider"
    RETURNED = "returned"
    VERIFYING = "verifying"
    DONE = "done"


class NoticeKind(str, Enum):
    VALIDATION = "validation"
    ORDER_ERROR = "order_error"
    PAYMENT_FAILED = "payment_failed"
    INFO = "info"
    SUCCESS = "success"


@dataclass
class Notice:
    kind: NoticeKind
    message: str
    dismissible: bool = True


class CheckoutStateError(RuntimeError):
    """An operation was called from a step that does not allow it."""


def validate_shipping(shipping: dict) -> tuple[dict, dict[str, str]]:
    """Returns the cleaned address (wire names) and per-field error messages."""
    cleaned, errors = {}, {}
    for wire, attr, label in SHIPPING_FIELDS:
        value = shipping.get(wire, shipping.get(attr))
        value = str(value).strip() if value is not None else ""
        if not value:
            errors[wire] = f"{label} is required"
        cleaned[wire] = value

    phone = cleaned.get("phone", "")
    if phone and len(re.sub(r"\D", "", phone)) < MIN_PHONE_DIGITS:
        errors["phone"] = f"Phone number must have at least {MIN_PHONE_DIGITS} digits"
    return cleaned, errors


class CheckoutFlow:
    def __init__(
        self,
        client: MarketplaceClient,
        cart: Cart,
        session_timeout: float = CHECKOUT_SESSION_TIMEOUT_SECONDS,
    ):
        self.client = client
        self.cart = cart
        self.session_timeout = session_timeout

        self.step = CheckoutStep.FORM
        self.shipping: dict = {}
        self.payment_method: str = CARD
        self.field_errors: dict[str, str] = {}
        self.notice: Optional[Notice] = None

        self.order_id: Optional[str] = None
        self.session_id: Optional[str] = None
        self.redirect_url: Optional[str] = None

    # --- helpers ---

    def _expect(self, *steps: CheckoutStep):
        if self.step not in steps:
            raise CheckoutStateError(f"Cannot do this while checkout is in step '{self.step.value}'")

    def _notify(self, kind: NoticeKind, message: str, dismissible: bool = True):
        self.notice = Notice(kind=kind, message=message, dismissible=dismissible)

    def dismiss_notice(self):
        if self.notice and self.notice.dismissible:
            self.notice = None

    def order_data(self) -> dict:
        """Request body shared by order placement and payment session creation."""
        return {
            "shipping_address": self.shipping,
            "payment_method": self.payment_method,
            "items": [
                {
                    "product_id": line.product.id,
                    "quantity": line.quantity,
                    "price": str(line.product.price),
                    "farmer_id": line.product.farmer_id,
                    "name": line.product.name,
                }
                for line in self.cart.items
            ],
            "total_amount": str(self.cart.total_price),
        }

    def summary(self) -> dict:
        return {
            "items": self.cart.to_dict()["items"],
            "totalItems": self.cart.total_items,
            "totalPrice": str(self.cart.total_price),
            "payment_method": self.payment_method,
            "shipping_address": self.shipping,
        }

    # --- form ---

    def submit_details(self, shipping: dict, payment_method: str) -> bool:
        """Validates the form locally; moves to REVIEW when everything checks out."""
        self._expect(CheckoutStep.FORM, CheckoutStep.REVIEW, CheckoutStep.RETURNED)

        cleaned, errors = validate_shipping(shipping)
        if payment_method not in CHECKOUT_METHODS:
            errors["payment_method"] = "Please choose a payment method"
        if self.cart.is_empty():
            errors["cart"] = "Your cart is empty"

        self.field_errors = errors
        if errors:
            self.step = CheckoutStep.FORM
            self._notify(NoticeKind.VALIDATION, "Please fix the highlighted fields")
            return False

        self.shipping = cleaned
        self.payment_method = payment_method
        self.notice = None
        self.step = CheckoutStep.REVIEW
        return True

    def switch_payment_method(self, payment_method: str):
        self._expect(CheckoutStep.FORM, CheckoutStep.REVIEW)
        if payment_method not in CHECKOUT_METHODS:
            raise ValueError(f"Unknown payment method '{payment_method}'")
        self.payment_method = payment_method
        self.notice = None

    def back_to_form(self):
        self._expect(CheckoutStep.REVIEW)
        self.step = CheckoutStep.FORM

    # --- review ---

    async def confirm(self) -> CheckoutStep:
        self._expect(CheckoutStep.REVIEW)
        if self.payment_method == CASH_ON_DELIVERY:
            await self._place_cash_order()
        else:
            await self._request_payment_session()
        return self.step

    async def _place_cash_order(self):
        self.step = CheckoutStep.SUBMITTING_COD
        try:
            order_id = await self.client.place_order(self.order_data())
        except MarketplaceAPIError as e:
            logger.warning("cod_order_failed", error=e.message)
            self._notify(NoticeKind.ORDER_ERROR, f"We could not place your order: {e.message}")
            self.step = CheckoutStep.REVIEW
            return

        self.order_id = order_id
        self.cart.clear()
        self._notify(NoticeKind.SUCCESS, "Your order has been placed")
        self.step = CheckoutStep.DONE
        logger.info("cod_order_placed", order_id=order_id)

    async def _request_payment_session(self):
        self.step = CheckoutStep.REDIRECTING_TO_PROVIDER
        try:
            # wait_for cancels the in-flight request when the bound is hit
            session = await asyncio.wait_for(
                self.client.create_checkout_session(self.order_data()),
                timeout=self.session_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("checkout_session_timeout", timeout=self.session_timeout)
            self._notify(
                NoticeKind.PAYMENT_FAILED,
                "The payment service is taking too long to respond. "
                "Please try again or choose cash on delivery.",
            )
            self.step = CheckoutStep.REVIEW
            return
        except MarketplaceAPIError as e:
            logger.warning("checkout_session_failed", error=e.message, details=e.details)
            message = f"Payment failed: {e.message}"
            if e.details:
                message = f"{message} ({e.details})"
            self._notify(NoticeKind.PAYMENT_FAILED, message)
            self.step = CheckoutStep.REVIEW
            return

        self.session_id = session["session_id"]
        self.redirect_url = session["url"]
        logger.info("checkout_session_ready", session_id=self.session_id)

    # --- provider return ---

    async def handle_return(self, canceled: bool = False, session_id: Optional[str] = None) -> CheckoutStep:
        """Buyer came back from the hosted payment page."""
        self.step = CheckoutStep.RETURNED
        if canceled or not session_id:
            self._notify(NoticeKind.INFO, "Payment was cancelled. Your cart has been kept.")
            return self.step

        self.session_id = session_id
        self.step = CheckoutStep.VERIFYING
        try:
            result = await self.client.verify_payment(session_id)
        except MarketplaceAPIError as e:
            logger.warning("payment_verification_failed", session_id=session_id, error=e.message)
            self._notify(NoticeKind.PAYMENT_FAILED, "We could not confirm your payment. Please contact support.")
            self.step = CheckoutStep.RETURNED
            return self.step

        if not result.get("success"):
            self._notify(NoticeKind.PAYMENT_FAILED, result.get("message") or "Payment not completed")
            self.step = CheckoutStep.RETURNED
            return self.step

        self.order_id = result.get("order_id")
        self.cart.clear()
        self._notify(NoticeKind.SUCCESS, "Payment received. Your order has been placed.")
        self.step = CheckoutStep.DONE
        return self.step
