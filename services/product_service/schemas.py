from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

PRODUCT_CATEGORIES = ("Grains", "Vegetables", "Fruits", "Dairy", "Meat", "Specialty")

Category = Literal["Grains", "Vegetables", "Fruits", "Dairy", "Meat", "Specialty"]
ProductStatus = Literal["active", "sold", "suspended"]


class ProductCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    quantity: int = Field(ge=0)
    quantity_unit: str = "kg"
    location: str = ""
    category: Category


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    quantity: Optional[int] = Field(default=None, ge=0)
    quantity_unit: Optional[str] = None
    location: Optional[str] = None
    category: Optional[Category] = None
    status: Optional[ProductStatus] = None


class ProductFilter(BaseModel):
    search: Optional[str] = None
    category: Optional[Category] = None
    location: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    sort_by: Literal["newest", "price-low", "price-high"] = "newest"
    limit: Optional[int] = Field(default=None, gt=0, le=100)


class ProductResponse(BaseModel):
    id: str
    user_id: str
    name: str
    description: Optional[str]
    price: Decimal
    quantity: int
    quantity_unit: str
    location: str
    category: str
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
