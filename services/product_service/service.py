import structlog
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.security.dependencies import Principal
from shared.security.permissions import Permission

from .models import Product
from .repository import ProductRepository
from .schemas import ProductCreate, ProductFilter, ProductUpdate

logger = structlog.get_logger(__name__)


class ProductService:

    @staticmethod
    async def create_product(db: AsyncSession, owner_id: str, data: ProductCreate):
        product = Product(user_id=owner_id, **data.model_dump())
        product = await ProductRepository.create_product(db, product)
        logger.info("product_created", product_id=product.id, farmer_id=owner_id)
        return product

    @staticmethod
    async def list_products(db: AsyncSession, flt: ProductFilter):
        return await ProductRepository.list_products(db, flt)

    @staticmethod
    async def get_product_by_id(db: AsyncSession, product_id: str):
        return await ProductRepository.get_product_by_id(db, product_id)

    @staticmethod
    async def list_farmer_products(db: AsyncSession, farmer_id: str):
        return await ProductRepository.get_products_for_farmer(db, farmer_id)

    @staticmethod
    def _ensure_owner(product: Product, principal: Principal):
        # Admins manage any listing; farmers only their own
        if principal.can(Permission.MANAGE_USERS):
            return
        if product.user_id != principal.user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only manage your own products",
            )

    @staticmethod
    async def update_product(db: AsyncSession, product_id: str, data: ProductUpdate, principal: Principal):
        product = await ProductRepository.get_product_by_id(db, product_id)
        if not product:
            return None
        ProductService._ensure_owner(product, principal)

        # Order items keep the price captured at order time; only the listing changes
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(product, field, value)
        return await ProductRepository.update_product(db, product)

    @staticmethod
    async def delete_product(db: AsyncSession, product_id: str, principal: Principal) -> bool:
        product = await ProductRepository.get_product_by_id(db, product_id)
        if not product:
            return False
        ProductService._ensure_owner(product, principal)
        deleted = await ProductRepository.delete_product(db, product_id)
        logger.info("product_deleted", product_id=product_id, by=principal.user_id)
        return deleted
