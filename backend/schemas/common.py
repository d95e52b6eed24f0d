# backend/schemas/common.py
import math
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class PageMeta(BaseModel):
    current_page: int
    per_page: int
    total: int
    last_page: int


# {"success": true, "message": ..., "data": ...}
class Envelope(BaseModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class Page(BaseModel, Generic[T]):
    success: bool = True
    data: List[T]
    meta: PageMeta


def ok(data=None, message: Optional[str] = None) -> dict:
    return {"success": True, "message": message, "data": data}


def paginated(items: list, total: int, page: int, per_page: int) -> dict:
    return {
        "success": True,
        "data": items,
        "meta": {
            "current_page": page,
            "per_page": per_page,
            "total": total,
            "last_page": max(1, math.ceil(total / per_page)) if per_page else 1,
        },
    }
