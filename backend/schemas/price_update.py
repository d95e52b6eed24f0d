# backend/schemas/price_update.py
from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from schemas.common import ORMBase


# One row of a bulk price/stock/discount edit
class BulkUpdateRow(BaseModel):
    product_id: int
    regular_price: Optional[Decimal] = Field(None, ge=0)
    stock_quantity: Optional[Decimal] = Field(None, ge=0)
    discount_type: Optional[Literal["none", "percentage", "fixed"]] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class BulkUpdateRequest(BaseModel):
    updates: List[BulkUpdateRow] = Field(min_length=1)


class ProductBrief(ORMBase):
    id: int
    name: str
    item_code: str
    stock_unit: str


class UpdaterBrief(ORMBase):
    id: int
    name: Optional[str] = None
    email: str


class PriceUpdateOut(ORMBase):
    id: int
    product_id: int
    product: Optional[ProductBrief] = None
    old_regular_price: Optional[float] = None
    new_regular_price: float
    old_discount_type: Optional[str] = None
    new_discount_type: Optional[str] = None
    old_discount_value: Optional[float] = None
    new_discount_value: Optional[float] = None
    old_stock_quantity: Optional[float] = None
    new_stock_quantity: Optional[float] = None
    old_selling_price: Optional[float] = None
    new_selling_price: float
    price_change_percentage: Optional[float] = None
    updater: Optional[UpdaterBrief] = None
    created_at: Optional[datetime] = None
