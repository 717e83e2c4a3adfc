from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class CartItemCreate(BaseModel):
    product_id: str
    quantity: int = Field(default=1, gt=0)


class CartItemUpdate(BaseModel):
    # Zero or less removes the line
    quantity: int


class CartProductResponse(BaseModel):
    id: str
    name: str
    price: Decimal
    farmer_id: str
    quantity_unit: str


class CartLineResponse(BaseModel):
    product: CartProductResponse
    quantity: int


class CartResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[CartLineResponse] = []
    total_items: int = Field(alias="totalItems")
    total_price: Decimal = Field(alias="totalPrice")
