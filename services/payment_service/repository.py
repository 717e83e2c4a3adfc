from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Payment


class PaymentRepository:
    @staticmethod
    async def create_payment(db: AsyncSession, payment: Payment):
        db.add(payment)
        await db.commit()
        await db.refresh(payment)
        return payment

    @staticmethod
    async def get_by_session(db: AsyncSession, session_id: str) -> Optional[Payment]:
        result = await db.execute(select(Payment).where(Payment.session_id == session_id))
        return result.scalars().first()

    @staticmethod
    async def record_outcome(
        db: AsyncSession,
        session_id: str,
        status: str,
        user_id: str,
        amount,
        order_id: Optional[str] = None,
    ):
        """Updates the ledger row of a session, creating it when it was never recorded."""
        payment = await PaymentRepository.get_by_session(db, session_id)
        if payment is None:
            payment = Payment(session_id=session_id, user_id=user_id, amount=amount)
            db.add(payment)

        payment.status = status
        if order_id:
            payment.order_id = order_id

        await db.commit()
        return payment
