from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security.dependencies import Principal, require_permission
from shared.security.permissions import Permission

from .schemas import CartItemCreate, CartItemUpdate, CartResponse
from .service import CartService, ProductUnavailable

router = APIRouter()
public_router = APIRouter()

buyer = require_permission(Permission.PURCHASE_CROPS)

@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "cart", "status": "running"}


@router.get("/", response_model=CartResponse, response_model_by_alias=True)
async def get_cart(principal: Principal = Depends(buyer), db: AsyncSession = Depends(get_db)):
    cart = await CartService.load_cart(db, principal.user_id)
    return cart.to_dict()


@router.post("/items", response_model=CartResponse, response_model_by_alias=True)
async def add_item(
    item: CartItemCreate,
    principal: Principal = Depends(buyer),
    db: AsyncSession = Depends(get_db),
):
    try:
        cart = await CartService.add_item(db, principal.user_id, item)
    except ProductUnavailable as e:
        raise HTTPException(status_code=404, detail=str(e))
    return cart.to_dict()


@router.patch("/items/{product_id}", response_model=CartResponse, response_model_by_alias=True)
async def update_item(
    product_id: str,
    payload: CartItemUpdate,
    principal: Principal = Depends(buyer),
    db: AsyncSession = Depends(get_db),
):
    cart = await CartService.update_quantity(db, principal.user_id, product_id, payload.quantity)
    return cart.to_dict()


@router.delete("/items/{product_id}", response_model=CartResponse, response_model_by_alias=True)
async def remove_item(
    product_id: str,
    principal: Principal = Depends(buyer),
    db: AsyncSession = Depends(get_db),
):
    cart = await CartService.remove_item(db, principal.user_id, product_id)
    return cart.to_dict()


@router.delete("/items", status_code=204)
async def clear_cart(principal: Principal = Depends(buyer), db: AsyncSession = Depends(get_db)):
    """Deletes all items in the caller's cart."""
    await CartService.clear_cart(db, principal.user_id)
