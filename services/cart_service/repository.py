from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import CartItem


class CartRepository:
    @staticmethod
    async def get_items(db: AsyncSession, user_id: str):
        result = await db.execute(
            select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.id)
        )
        return result.scalars().all()

    @staticmethod
    async def add_item(db: AsyncSession, user_id: str, product_id: str, quantity: int):
        result = await db.execute(
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .where(CartItem.product_id == product_id)
        )
        existing_item = result.scalars().first()

        if existing_item:
            existing_item.quantity += quantity
        else:
            db.add(CartItem(user_id=user_id, product_id=product_id, quantity=quantity))

        await db.commit()

    @staticmethod
    async def set_quantity(db: AsyncSession, user_id: str, product_id: str, quantity: int) -> bool:
        result = await db.execute(
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .where(CartItem.product_id == product_id)
        )
        item = result.scalars().first()
        if not item:
            return False
        item.quantity = quantity
        await db.commit()
        return True

    @staticmethod
    async def remove_item(db: AsyncSession, user_id: str, product_id: str):
        stmt = delete(CartItem).where(
            CartItem.user_id == user_id,
            CartItem.product_id == product_id
        )
        await db.execute(stmt)
        await db.commit()

    @staticmethod
    async def clear_cart(db: AsyncSession, user_id: str) -> int:
        """Deletes every cart row of the user; returns how many were removed."""
        result = await db.execute(delete(CartItem).where(CartItem.user_id == user_id))
        await db.commit()
        return result.rowcount
