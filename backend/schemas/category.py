# backend/schemas/category.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from schemas.common import ORMBase


class CategoryBrief(ORMBase):
    id: int
    name: str


# Full category representation
class CategoryOut(ORMBase):
    id: int
    name: str
    description: Optional[str] = None
    parent_id: Optional[int] = None
    image: Optional[str] = None
    status: str
    sort_order: int = 0
    products_count: int = 0
    created_at: Optional[datetime] = None


# Category with nested children for the tree view
class CategoryTree(ORMBase):
    id: int
    name: str
    status: str
    sort_order: int = 0
    children: List["CategoryTree"] = []


class CategoryOrderItem(BaseModel):
    id: int
    sort_order: Optional[int] = Field(None, ge=0)


class CategoryReorder(BaseModel):
    categories: List[CategoryOrderItem] = Field(min_length=1)
