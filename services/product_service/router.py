from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security.dependencies import Principal, require_permission
from shared.security.permissions import Permission

from .schemas import ProductCreate, ProductFilter, ProductResponse, ProductUpdate
from .service import ProductService

router = APIRouter()
public_router = APIRouter()

@public_router.get("/health")
async def health_check():
    return {"service": "product", "status": "running"}


@public_router.get("/", response_model=list[ProductResponse])
async def list_products(
    search: str | None = Query(default=None),
    category: str | None = Query(default=None),
    location: str | None = Query(default=None),
    min_price: Decimal | None = Query(default=None),
    max_price: Decimal | None = Query(default=None),
    sort_by: str = Query(default="newest"),
    limit: int | None = Query(default=None),
    db: AsyncSession = Depends(get_db)
):
    try:
        flt = ProductFilter(
            search=search,
            category=category,
            location=location,
            min_price=min_price,
            max_price=max_price,
            sort_by=sort_by,
            limit=limit,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))
    return await ProductService.list_products(db, flt)


@router.get("/mine", response_model=list[ProductResponse])
async def list_my_products(
    principal: Principal = Depends(require_permission(Permission.LIST_CROPS)),
    db: AsyncSession = Depends(get_db)
):
    return await ProductService.list_farmer_products(db, principal.user_id)


@public_router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str, db: AsyncSession = Depends(get_db)):
    product = await ProductService.get_product_by_id(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.post("/", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product: ProductCreate,
    principal: Principal = Depends(require_permission(Permission.LIST_CROPS)),
    db: AsyncSession = Depends(get_db)
):
    return await ProductService.create_product(db, principal.user_id, product)


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    payload: ProductUpdate,
    principal: Principal = Depends(require_permission(Permission.EDIT_PRODUCT)),
    db: AsyncSession = Depends(get_db)
):
    product = await ProductService.update_product(db, product_id, payload, principal)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: str,
    principal: Principal = Depends(require_permission(Permission.DELETE_PRODUCT)),
    db: AsyncSession = Depends(get_db)
):
    if not await ProductService.delete_product(db, product_id, principal):
        raise HTTPException(status_code=404, detail="Product not found")
