# backend/schemas/customer.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from schemas.common import ORMBase


class CustomerBase(BaseModel):
    address: Optional[str] = Field(None, max_length=500)
    area: Optional[str] = Field(None, max_length=100)
    landmark: Optional[str] = Field(None, max_length=255)
    remarks: Optional[str] = Field(None, max_length=1000)
    active: Optional[bool] = None


class CustomerCreate(CustomerBase):
    name: str = Field(min_length=1, max_length=100)
    whatsapp_number: str = Field(min_length=1, max_length=20)


# All fields optional for partial updates
class CustomerUpdate(CustomerBase):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    whatsapp_number: Optional[str] = Field(None, min_length=1, max_length=20)


class CustomerOut(ORMBase):
    id: int
    name: str
    whatsapp_number: str
    address: Optional[str] = None
    area: Optional[str] = None
    landmark: Optional[str] = None
    remarks: Optional[str] = None
    active: bool
    created_at: Optional[datetime] = None
