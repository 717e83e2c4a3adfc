from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import User


class UserRepository:

    @staticmethod
    async def create(db: AsyncSession, user: User) -> User:
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalars().first()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    @staticmethod
    async def get_display_names(db: AsyncSession, user_ids: list[str]) -> dict[str, Optional[str]]:
        """Maps user id -> full name for the given ids (missing users are absent)."""
        if not user_ids:
            return {}
        result = await db.execute(
            select(User.id, User.full_name).where(User.id.in_(set(user_ids)))
        )
        return {row.id: row.full_name for row in result}
