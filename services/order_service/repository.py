from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .models import Order, OrderItem


class OrderRepository:
    @staticmethod
    async def create_order(db: AsyncSession, order: Order, commit: bool = True):
        db.add(order)
        if commit:
            await db.commit()
            await db.refresh(order)
        else:
            await db.flush()
        return order

    @staticmethod
    async def add_order_item(db: AsyncSession, item: OrderItem, commit: bool = True):
        db.add(item)
        if commit:
            await db.commit()
        else:
            await db.flush()
        return item

    @staticmethod
    def _with_items():
        # populate_existing: items added in this session must show up on re-read
        return (
            select(Order)
            .options(selectinload(Order.items))
            .execution_options(populate_existing=True)
        )

    @staticmethod
    async def get_order(db: AsyncSession, order_id: str) -> Optional[Order]:
        result = await db.execute(OrderRepository._with_items().where(Order.id == order_id))
        return result.scalars().first()

    @staticmethod
    async def get_orders_for_user(db: AsyncSession, user_id: str):
        result = await db.execute(
            OrderRepository._with_items()
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def get_orders_for_farmer(db: AsyncSession, farmer_id: str):
        """Orders holding at least one line of the farmer, newest first."""
        order_ids = (
            select(OrderItem.order_id)
            .where(OrderItem.farmer_id == farmer_id)
            .distinct()
        )
        result = await db.execute(
            OrderRepository._with_items()
            .where(Order.id.in_(order_ids))
            .order_by(Order.created_at.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def get_all_orders(db: AsyncSession):
        result = await db.execute(OrderRepository._with_items().order_by(Order.created_at.desc()))
        return result.scalars().all()

    @staticmethod
    async def find_by_payment_session(db: AsyncSession, session_id: str) -> Optional[Order]:
        result = await db.execute(
            OrderRepository._with_items().where(Order.payment_session_id == session_id)
        )
        return result.scalars().first()

    @staticmethod
    async def farmer_has_items(db: AsyncSession, order_id: str, farmer_id: str) -> bool:
        result = await db.execute(
            select(OrderItem.id)
            .where(OrderItem.order_id == order_id)
            .where(OrderItem.farmer_id == farmer_id)
            .limit(1)
        )
        return result.first() is not None

    @staticmethod
    async def update_status(db: AsyncSession, order: Order, status: str):
        order.status = status
        order.updated_at = datetime.now(timezone.utc)

        await db.commit()
        await db.refresh(order)
        return order
