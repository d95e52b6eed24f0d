# backend/schemas/product.py
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from schemas.category import CategoryBrief
from schemas.common import ORMBase


class DiscountOut(ORMBase):
    id: int
    discount_type: str
    discount_value: float
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: str


# Full product representation with the current selling price
class ProductOut(ORMBase):
    id: int
    name: str
    item_code: str
    category_id: Optional[int] = None
    category: Optional[CategoryBrief] = None
    image: Optional[str] = None
    regular_price: float
    selling_price: float
    has_discount: bool
    discount_percentage: float
    active_discount: Optional[DiscountOut] = None
    stock_quantity: float
    stock_unit: str
    min_order_quantity: Optional[float] = None
    max_order_quantity: Optional[float] = None
    product_type: str
    status: str
    created_at: Optional[datetime] = None


# Products as offered on the public order form
class OrderFormProduct(ORMBase):
    id: int
    name: str
    item_code: str
    category_id: Optional[int] = None
    image: Optional[str] = None
    regular_price: float
    selling_price: float
    has_discount: bool
    discount_percentage: float
    stock_unit: str
    min_order_quantity: Optional[float] = None
    max_order_quantity: Optional[float] = None
    product_type: str


# Schema for adding a pre-packed size
class VariationCreate(BaseModel):
    quantity: float = Field(gt=0)
    unit: str = Field(min_length=1, max_length=20)
    price: float = Field(ge=0)
    stock_quantity: int = Field(0, ge=0)
    sku: Optional[str] = None
    enabled: bool = True


class VariationOut(ORMBase):
    id: int
    product_id: int
    quantity: float
    unit: str
    price: float
    stock_quantity: int
    sku: Optional[str] = None
    enabled: bool
    display_name: str
    in_stock: bool
