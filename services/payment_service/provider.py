"""
Hosted-checkout payment provider client (Stripe Checkout through the stripe SDK).

Only the three calls the marketplace needs are wrapped: create a session,
retrieve it, and list what was purchased in it. Everything else in the
service talks to the plain types defined here, never to SDK objects.
"""
from dataclasses import dataclass, field
from typing import Any, Optional

import stripe
import structlog

from shared.config.settings import STRIPE_SECRET_KEY

logger = structlog.get_logger(__name__)


class PaymentProviderError(Exception):
    def __init__(self, message: str, details: str = ""):
        super().__init__(message)
        self.message = message
        self.details = details


@dataclass
class CheckoutSession:
    id: str
    url: Optional[str] = None
    payment_status: str = "unpaid"
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_stripe(cls, session: Any) -> "CheckoutSession":
        metadata = session.metadata.to_dict() if session.metadata else {}
        return cls(
            id=session.id,
            url=session.url,
            payment_status=session.payment_status or "unpaid",
            metadata={str(k): str(v) for k, v in metadata.items()},
        )


def line_item_to_dict(item: Any) -> dict:
    """Flattens a Stripe line item into the plain shape the payment handler reads."""
    price = item.price
    product = price.product if price else None
    if product is None or isinstance(product, str):
        product_data = product
    else:
        product_data = {"id": product.id, "metadata": product.metadata.to_dict() if product.metadata else {}}
    return {
        "quantity": item.quantity,
        "description": item.description,
        "price": {"unit_amount": price.unit_amount, "product": product_data} if price else None,
    }


def _explain(error: stripe.StripeError) -> str:
    if isinstance(error, stripe.AuthenticationError):
        return "Invalid or unauthorized API key. Please check your Stripe configuration."
    if isinstance(error, stripe.RateLimitError):
        return "Too many requests to Stripe. Please try again in a moment."
    if isinstance(error, stripe.APIConnectionError):
        return "Could not reach Stripe. Please try again."
    return "See payment service logs for more details"


class StripeCheckoutProvider:
    def __init__(self, secret_key: str = STRIPE_SECRET_KEY):
        self.secret_key = secret_key

    def _ensure_configured(self):
        if not self.secret_key:
            logger.error("stripe_not_configured")
            raise PaymentProviderError("Stripe configuration error", "API key not configured")

    @staticmethod
    def _translate(call: str, error: stripe.StripeError) -> PaymentProviderError:
        message = error.user_message or str(error) or "Unknown checkout error"
        logger.error("stripe_request_failed", call=call, status=error.http_status, message=message)
        if isinstance(error, stripe.APIConnectionError):
            return PaymentProviderError("Payment provider unreachable", _explain(error))
        return PaymentProviderError(message, _explain(error))

    async def create_session(
        self,
        line_items: list[dict],
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        self._ensure_configured()
        try:
            session = await stripe.checkout.Session.create_async(
                api_key=self.secret_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=line_items,
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            raise self._translate("create_session", e) from e

        logger.info("stripe_session_created", session_id=session.id)
        return CheckoutSession.from_stripe(session)

    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        self._ensure_configured()
        try:
            session = await stripe.checkout.Session.retrieve_async(session_id, api_key=self.secret_key)
        except stripe.StripeError as e:
            raise self._translate("retrieve_session", e) from e
        return CheckoutSession.from_stripe(session)

    async def list_line_items(self, session_id: str) -> list[dict]:
        """Purchased lines with their product objects (and metadata) expanded."""
        self._ensure_configured()
        try:
            items = await stripe.checkout.Session.list_line_items_async(
                session_id,
                api_key=self.secret_key,
                limit=100,
                expand=["data.price.product"],
            )
        except stripe.StripeError as e:
            raise self._translate("list_line_items", e) from e
        return [line_item_to_dict(item) for item in items.data]


def get_payment_provider() -> StripeCheckoutProvider:
    return StripeCheckoutProvider()
