# backend/schemas/order.py
import re
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from schemas.common import ORMBase
from utils import phone

NAME_PATTERN = re.compile(r"^[a-zA-Z\s]+$")


# A single product line submitted from the order form
class OrderFormItem(BaseModel):
    product_id: int
    quantity: Decimal = Field(ge=0)
    unit: Optional[str] = None


class ReviewRequest(BaseModel):
    cart_token: Optional[str] = None
    items: List[OrderFormItem]


class OrderPdfRequest(BaseModel):
    cart_token: Optional[str] = None
    items: Optional[List[OrderFormItem]] = None


# Customer details entered on the confirmation step
class ConfirmOrderRequest(BaseModel):
    cart_token: str
    customer_name: str = Field(min_length=3, max_length=100)
    email: Optional[EmailStr] = None
    whatsapp: str = Field(max_length=20)
    address: str = Field(min_length=2, max_length=500)
    delivery_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=1000)
    grand_total: Optional[Decimal] = None

    @field_validator("email", mode="before")
    @classmethod
    def blank_email(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("customer_name")
    @classmethod
    def check_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 3 or not NAME_PATTERN.match(value):
            raise ValueError("Name may only contain letters and spaces (3-100 characters)")
        return value

    @field_validator("whatsapp")
    @classmethod
    def check_whatsapp(cls, value: str) -> str:
        value = value.strip()
        if not phone.is_order_form_number(value):
            raise ValueError("Please enter a valid Indian (+91) or UAE (+971) WhatsApp number")
        return value

    @field_validator("address")
    @classmethod
    def check_address(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Please enter a complete delivery address")
        return value


# Schema for admin status changes
class OrderStatusPatch(BaseModel):
    status: str
    admin_notes: Optional[str] = Field(None, max_length=1000)


class OrderItemOut(ORMBase):
    id: int
    product_id: Optional[int] = None
    product_name: str
    product_code: Optional[str] = None
    quantity: float
    unit: str
    price: float
    regular_price: float
    discount_type: Optional[str] = None
    discount_value: Optional[float] = None
    discount_amount: float
    subtotal: float
    total: float


# Output schema representing the full order details
class OrderOut(ORMBase):
    id: int
    order_number: str
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    order_date: date
    delivery_date: Optional[date] = None
    subtotal: float
    discount_amount: float
    total: float
    status: str
    payment_status: str
    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemOut] = []


# Priced review line; all amounts derived server-side
class ReviewLineOut(BaseModel):
    product_id: int
    name: str
    item_code: str
    category: Optional[str] = None
    stock_unit: str
    quantity: float
    unit: str
    regular_price: float
    effective_price: float
    has_discount: bool
    discount_type: Optional[str] = None
    discount_value: Optional[float] = None
    discount_percentage: float
    discount_amount: float
    regular_subtotal: float
    subtotal: float


class ReviewOut(BaseModel):
    cart_token: Optional[str] = None
    items: List[ReviewLineOut]
    subtotal: float
    discount: float
    total: float
    item_count: int
