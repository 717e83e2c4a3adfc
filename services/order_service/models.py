import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship
from shared.config.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Order(Base):
    __tablename__ = "orders"
    # We use a separate schema to simulate microservice isolation
    __table_args__ = {"schema": "order_schema"}

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True) # buyer, immutable
    status = Column(String(20), nullable=False, default="pending")
    total_amount = Column(Numeric(10, 2), nullable=False) # calculated at creation, never recomputed
    shipping_address = Column(JSON, nullable=False)
    payment_method = Column(String(50), nullable=False) # credit-card, cash-on-delivery, stripe
    payment_session_id = Column(String(255), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    items = relationship("OrderItem", back_populates="order", lazy="selectin")


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = {"schema": "order_schema"}

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("order_schema.orders.id"), nullable=False, index=True)
    product_id = Column(String(36), nullable=False)
    # Owner of the product when the line was recorded; lets a farmer find their lines directly
    farmer_id = Column(String(36), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False) # unit price captured at order time
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    order = relationship("Order", back_populates="items")
