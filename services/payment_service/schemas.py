from typing import Optional

from pydantic import BaseModel

from services.order_service.schemas import PlaceOrderRequest


class CheckoutSessionRequest(BaseModel):
    order_data: PlaceOrderRequest


class CheckoutSessionResponse(BaseModel):
    url: str
    session_id: str


class PaymentErrorResponse(BaseModel):
    error: str
    details: str = ""


class VerifyPaymentRequest(BaseModel):
    session_id: str


class VerifyPaymentResponse(BaseModel):
    success: bool
    order_id: Optional[str] = None
    message: Optional[str] = None
