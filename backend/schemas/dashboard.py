from typing import Dict, List

from pydantic import BaseModel

from schemas.price_update import PriceUpdateOut


class CountSplit(BaseModel):
    total: int
    active: int
    inactive: int


class PriceUpdateCounts(BaseModel):
    total: int
    today: int
    this_week: int


class OrderStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    revenue: float


class Statistics(BaseModel):
    products: CountSplit
    categories: CountSplit
    customers: CountSplit
    price_updates: PriceUpdateCounts
    low_stock_products: int
    product_types: Dict[str, int]
    orders: OrderStats


# Response schema for the admin dashboard
class DashboardOut(BaseModel):
    statistics: Statistics
    recent_price_changes: List[PriceUpdateOut]
