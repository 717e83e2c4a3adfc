"""
Card checkout endpoints.

Session creation is a buyer action. Verification is keyed only by the
provider's session id and is safe to call repeatedly: the buyer's browser,
a retry and a provider redelivery all converge on the same order.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from services.order_service.exceptions import OrderCreationFailed
from shared.config.database import get_db
from shared.config.settings import FRONTEND_ORIGIN
from shared.security.dependencies import Principal, require_permission
from shared.security.permissions import Permission

from .provider import PaymentProviderError, StripeCheckoutProvider, get_payment_provider
from .schemas import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PaymentErrorResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from .service import CheckoutRejected, PaymentService, PaymentVerificationError

router = APIRouter()
public_router = APIRouter()

buyer = require_permission(Permission.PURCHASE_CROPS)


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "payment", "status": "running"}


def _provider_error(e: PaymentProviderError) -> JSONResponse:
    body = PaymentErrorResponse(error=e.message, details=e.details)
    return JSONResponse(status_code=502, content=body.model_dump())


@router.post(
    "/checkout-session",
    response_model=CheckoutSessionResponse,
    responses={502: {"model": PaymentErrorResponse}},
)
async def create_checkout_session(
    payload: CheckoutSessionRequest,
    request: Request,
    principal: Principal = Depends(buyer),
    db: AsyncSession = Depends(get_db),
    provider: StripeCheckoutProvider = Depends(get_payment_provider),
):
    origin = request.headers.get("origin") or FRONTEND_ORIGIN
    try:
        return await PaymentService.create_checkout_session(
            db, provider, principal.user_id, payload.order_data, origin
        )
    except CheckoutRejected as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PaymentProviderError as e:
        return _provider_error(e)


@public_router.post(
    "/verify",
    response_model=VerifyPaymentResponse,
    responses={502: {"model": PaymentErrorResponse}},
)
async def verify_payment(
    payload: VerifyPaymentRequest,
    db: AsyncSession = Depends(get_db),
    provider: StripeCheckoutProvider = Depends(get_payment_provider),
):
    try:
        return await PaymentService.verify_payment(db, provider, payload.session_id)
    except PaymentProviderError as e:
        return _provider_error(e)
    except PaymentVerificationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except OrderCreationFailed as e:
        raise HTTPException(status_code=500, detail=str(e))
