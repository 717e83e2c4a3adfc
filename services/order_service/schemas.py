from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .status import OrderStatus

PAYMENT_METHODS = ("credit-card", "cash-on-delivery", "stripe")
PaymentMethod = Literal["credit-card", "cash-on-delivery", "stripe"]


class ShippingAddress(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    full_name: str = Field(alias="fullName", min_length=1)
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(alias="zipCode", min_length=1)
    country: str = Field(min_length=1)
    phone: str = Field(min_length=10)


class OrderCreate(BaseModel):
    """Input of the order creation call: one order row, no items."""
    user_id: str
    total_amount: Decimal = Field(gt=0, decimal_places=2)
    shipping_address: ShippingAddress
    payment_method: PaymentMethod


class OrderItemCreate(BaseModel):
    """Input of the order item add call."""
    product_id: str
    quantity: int = Field(gt=0)
    price: Decimal = Field(ge=0, decimal_places=2)
    farmer_id: Optional[str] = None


class CheckoutLine(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)
    # Price the buyer saw in the cart; recorded as-is on the order item
    price: Decimal = Field(ge=0, decimal_places=2)
    farmer_id: Optional[str] = None
    name: Optional[str] = None


class PlaceOrderRequest(BaseModel):
    """Cash-on-delivery checkout: the order and all of its lines in one call."""
    shipping_address: ShippingAddress
    payment_method: PaymentMethod = "cash-on-delivery"
    items: list[CheckoutLine] = Field(min_length=1)
    total_amount: Optional[Decimal] = None

    @field_validator("items")
    @classmethod
    def _unique_products(cls, items: list[CheckoutLine]):
        seen = set()
        for line in items:
            if line.product_id in seen:
                raise ValueError(f"Product {line.product_id} appears more than once")
            seen.add(line.product_id)
        return items


class OrderCreated(BaseModel):
    order_id: str


class BuyerInfo(BaseModel):
    id: str
    full_name: Optional[str] = None


class OrderItemResponse(BaseModel):
    id: str
    order_id: str
    product_id: str
    farmer_id: str
    quantity: int
    price: Decimal
    product_name: str


class OrderResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_id: str
    status: OrderStatus
    total_amount: Decimal
    shipping_address: ShippingAddress
    payment_method: str
    created_at: datetime
    updated_at: datetime
    buyer: Optional[BuyerInfo] = None
    items: list[OrderItemResponse] = []


class FarmerOrderResponse(OrderResponse):
    # Sum over the lines visible to the viewing farmer only
    farmer_subtotal: Decimal = Decimal("0")


class StatusUpdate(BaseModel):
    status: OrderStatus


class ActionRequest(BaseModel):
    confirm: bool = False


class ActionResponse(BaseModel):
    order_id: str
    status: OrderStatus
    message: str
    available_actions: list[str] = []


class OrderStats(BaseModel):
    total_orders: int = 0
    pending: int = 0
    paid: int = 0
    processing: int = 0
    shipped: int = 0
    delivered: int = 0
    cancelled: int = 0
    total_revenue: Decimal = Decimal("0")
