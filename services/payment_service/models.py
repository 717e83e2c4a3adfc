from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, Numeric, String
from shared.config.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Payment(Base):
    """Ledger of hosted checkout sessions and what became of them."""
    __tablename__ = "payments"
    __table_args__ = {"schema": "payment_schema"}

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(255), nullable=False, unique=True, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    status = Column(String(20), nullable=False, default="open") # open, paid, unpaid
    order_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
