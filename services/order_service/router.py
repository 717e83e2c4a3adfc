from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security.dependencies import Principal, require_permission, verify_internal_api_key
from shared.security.permissions import Permission

from .exceptions import (
    ConfirmationRequired,
    InvalidStatusTransition,
    OrderCreationFailed,
    OrderNotFound,
    ReconciliationError,
)
from .schemas import (
    ActionRequest,
    ActionResponse,
    FarmerOrderResponse,
    OrderCreate,
    OrderCreated,
    OrderItemCreate,
    OrderResponse,
    OrderStats,
    PlaceOrderRequest,
    StatusUpdate,
)
from .service import OrderService
from .workflow import OrderAction, available_actions, perform_action

router = APIRouter()
public_router = APIRouter()

# Service-to-service calls (payment handler, back office); never exposed to browsers
internal_router = APIRouter(prefix="/internal", dependencies=[Depends(verify_internal_api_key)])

buyer = require_permission(Permission.PURCHASE_CROPS)
order_manager = require_permission(Permission.MANAGE_ORDERS)

ORDER_NOT_FOUND = "Order not found"


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "order", "status": "running"}


# --- internal calls ---

@internal_router.post("/", response_model=OrderCreated, status_code=status.HTTP_201_CREATED)
async def create_order(order: OrderCreate, db: AsyncSession = Depends(get_db)):
    try:
        order_id = await OrderService.create_order(db, order)
    except OrderCreationFailed as e:
        raise HTTPException(status_code=500, detail=str(e))
    return OrderCreated(order_id=order_id)


@internal_router.post("/{order_id}/items", status_code=status.HTTP_201_CREATED)
async def add_order_item(order_id: str, item: OrderItemCreate, db: AsyncSession = Depends(get_db)):
    try:
        created = await OrderService.add_order_item(db, order_id, item)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail=ORDER_NOT_FOUND)
    except ReconciliationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"id": created.id, "order_id": order_id, "farmer_id": created.farmer_id}


@internal_router.patch("/{order_id}/status", response_model=OrderResponse)
async def internal_update_status(order_id: str, payload: StatusUpdate, db: AsyncSession = Depends(get_db)):
    try:
        await OrderService.update_order_status(db, order_id, payload.status)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail=ORDER_NOT_FOUND)
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    return await OrderService.get_order_by_id(db, order_id)


# --- buyers ---

@router.post("/", response_model=OrderCreated, status_code=status.HTTP_201_CREATED)
async def place_order(
    payload: PlaceOrderRequest,
    principal: Principal = Depends(buyer),
    db: AsyncSession = Depends(get_db),
):
    """Cash-on-delivery checkout: creates the order and its items atomically."""
    try:
        order_id = await OrderService.place_order(db, principal.user_id, payload)
    except OrderCreationFailed as e:
        raise HTTPException(status_code=400, detail=str(e))
    return OrderCreated(order_id=order_id)


@router.get("/", response_model=list[OrderResponse])
async def list_my_orders(principal: Principal = Depends(buyer), db: AsyncSession = Depends(get_db)):
    return await OrderService.get_orders_for_user(db, principal.user_id)


# --- farmers ---

@router.get("/farmer", response_model=list[FarmerOrderResponse])
async def list_farmer_orders(principal: Principal = Depends(order_manager), db: AsyncSession = Depends(get_db)):
    return await OrderService.get_orders_for_farmer(db, principal.user_id)


@router.get("/farmer/stats", response_model=OrderStats)
async def farmer_order_stats(principal: Principal = Depends(order_manager), db: AsyncSession = Depends(get_db)):
    orders = await OrderService.get_orders_for_farmer(db, principal.user_id)
    return OrderService.summarize_orders(orders)


@router.get("/farmer/{order_id}", response_model=FarmerOrderResponse)
async def get_farmer_order(
    order_id: str,
    principal: Principal = Depends(order_manager),
    db: AsyncSession = Depends(get_db),
):
    order = await OrderService.get_order_for_farmer(db, order_id, principal.user_id)
    if not order:
        raise HTTPException(status_code=404, detail=ORDER_NOT_FOUND)
    return order


async def _ensure_can_manage(db: AsyncSession, order_id: str, principal: Principal):
    if principal.can(Permission.MANAGE_USERS):
        return
    if not await OrderService.farmer_has_items(db, order_id, principal.user_id):
        # Same answer as a missing order: foreign orders are not addressable
        raise HTTPException(status_code=404, detail=ORDER_NOT_FOUND)


@router.post("/{order_id}/actions/{action}", response_model=ActionResponse)
async def apply_order_action(
    order_id: str,
    action: OrderAction,
    payload: ActionRequest | None = None,
    principal: Principal = Depends(order_manager),
    db: AsyncSession = Depends(get_db),
):
    await _ensure_can_manage(db, order_id, principal)
    confirmed = payload.confirm if payload else False

    try:
        result = await perform_action(db, order_id, action, confirmed=confirmed)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail=ORDER_NOT_FOUND)
    except ConfirmationRequired as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=409, detail=str(e))

    return ActionResponse(
        order_id=result.order.id,
        status=result.order.status,
        message=result.message,
        available_actions=[a.value for a in available_actions(result.order.status)],
    )


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    payload: StatusUpdate,
    principal: Principal = Depends(order_manager),
    db: AsyncSession = Depends(get_db),
):
    await _ensure_can_manage(db, order_id, principal)
    try:
        await OrderService.update_order_status(db, order_id, payload.status)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail=ORDER_NOT_FOUND)
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    return await OrderService.get_order_by_id(db, order_id)


# --- shared ---

@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, principal: Principal = Depends(buyer), db: AsyncSession = Depends(get_db)):
    order = await OrderService.get_order_by_id(db, order_id)
    # Buyers only see their own orders; farmers use /farmer/{order_id}
    if not order or (order.user_id != principal.user_id and not principal.can(Permission.MANAGE_USERS)):
        raise HTTPException(status_code=404, detail=ORDER_NOT_FOUND)
    return order
