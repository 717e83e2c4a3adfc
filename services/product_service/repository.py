from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Product
from .schemas import ProductFilter


class ProductRepository:

    @staticmethod
    async def create_product(db: AsyncSession, product: Product):
        db.add(product)
        await db.commit()
        await db.refresh(product)
        return product

    @staticmethod
    async def list_products(db: AsyncSession, flt: ProductFilter):
        stmt = select(Product).where(Product.status == "active")

        if flt.search:
            pattern = f"%{flt.search.lower()}%"
            stmt = stmt.where(Product.name.ilike(pattern) | Product.description.ilike(pattern))
        if flt.category:
            stmt = stmt.where(Product.category == flt.category)
        if flt.location:
            stmt = stmt.where(Product.location.ilike(f"%{flt.location}%"))
        if flt.min_price is not None:
            stmt = stmt.where(Product.price >= flt.min_price)
        if flt.max_price is not None:
            stmt = stmt.where(Product.price <= flt.max_price)

        if flt.sort_by == "price-low":
            stmt = stmt.order_by(Product.price.asc())
        elif flt.sort_by == "price-high":
            stmt = stmt.order_by(Product.price.desc())
        else:
            stmt = stmt.order_by(Product.created_at.desc())

        if flt.limit:
            stmt = stmt.limit(flt.limit)

        result = await db.execute(stmt)
        return result.scalars().all()

    @staticmethod
    async def get_product_by_id(db: AsyncSession, product_id: str) -> Optional[Product]:
        result = await db.execute(select(Product).where(Product.id == product_id))
        return result.scalars().first()

    @staticmethod
    async def get_products_by_ids(db: AsyncSession, product_ids: list[str]) -> dict[str, Product]:
        if not product_ids:
            return {}
        result = await db.execute(select(Product).where(Product.id.in_(set(product_ids))))
        return {p.id: p for p in result.scalars().all()}

    @staticmethod
    async def get_products_for_farmer(db: AsyncSession, farmer_id: str):
        result = await db.execute(
            select(Product).where(Product.user_id == farmer_id).order_by(Product.created_at.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def update_product(db: AsyncSession, product: Product):
        db.add(product)
        await db.commit()
        await db.refresh(product)
        return product

    @staticmethod
    async def delete_product(db: AsyncSession, product_id: str) -> bool:
        result = await db.execute(delete(Product).where(Product.id == product_id))
        await db.commit()
        return result.rowcount > 0
