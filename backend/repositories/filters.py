# backend/repositories/filters.py
"""Typed list filters and the SQLAlchemy predicates they translate to."""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Union

from sqlalchemy import and_, exists, or_

from models.category import Category
from models.customer import Customer
from models.order import Order
from models.price_update import PriceUpdate
from models.product import Product, ProductDiscount


@dataclass
class ProductFilter:
    search: Optional[str] = None
    category_id: Optional[Union[int, List[int]]] = None
    status: Optional[str] = None
    product_type: Optional[str] = None
    stock_status: Optional[str] = None # in_stock | low_stock | out_of_stock
    has_discount: Optional[bool] = None


@dataclass
class CategoryFilter:
    search: Optional[str] = None
    status: Optional[str] = None
    parent_id: Optional[int] = None


@dataclass
class CustomerFilter:
    search: Optional[str] = None
    active: Optional[bool] = None


@dataclass
class OrderFilter:
    search: Optional[str] = None
    status: Optional[str] = None
    customer_id: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None


def active_discount_clause(on: date):
    return and_(
        ProductDiscount.product_id == Product.id,
        ProductDiscount.status == "active",
        or_(ProductDiscount.start_date.is_(None), ProductDiscount.start_date <= on),
        or_(ProductDiscount.end_date.is_(None), ProductDiscount.end_date >= on),
    )


def stock_status_clause(stock_status: str, threshold: int):
    if stock_status == "in_stock":
        return Product.stock_quantity > threshold
    if stock_status == "low_stock":
        return and_(Product.stock_quantity > 0, Product.stock_quantity <= threshold)
    if stock_status == "out_of_stock":
        return Product.stock_quantity <= 0
    return None


def product_clauses(f: ProductFilter, *, today: Optional[date] = None, low_stock_threshold: int = 10) -> list:
    clauses = []
    if f.search:
        like = f"%{f.search.strip()}%"
        clauses.append(or_(Product.name.ilike(like), Product.item_code.ilike(like)))
    if f.category_id:
        if isinstance(f.category_id, (list, tuple)):
            clauses.append(Product.category_id.in_(f.category_id))
        else:
            clauses.append(Product.category_id == f.category_id)
    if f.status:
        clauses.append(Product.status == f.status)
    if f.product_type:
        clauses.append(Product.product_type == f.product_type)
    if f.stock_status:
        clause = stock_status_clause(f.stock_status, low_stock_threshold)
        if clause is not None:
            clauses.append(clause)
    if f.has_discount is not None:
        discounted = exists().where(active_discount_clause(today or date.today()))
        clauses.append(discounted if f.has_discount else ~discounted)
    return clauses


def category_clauses(f: CategoryFilter) -> list:
    clauses = []
    if f.search:
        clauses.append(Category.name.ilike(f"%{f.search.strip()}%"))
    if f.status:
        clauses.append(Category.status == f.status)
    if f.parent_id is not None:
        clauses.append(Category.parent_id == f.parent_id)
    return clauses


def customer_clauses(f: CustomerFilter) -> list:
    clauses = []
    if f.search:
        like = f"%{f.search.strip()}%"
        clauses.append(or_(Customer.name.ilike(like), Customer.whatsapp_number.ilike(like)))
    if f.active is not None:
        clauses.append(Customer.active == f.active)
    return clauses


def order_clauses(f: OrderFilter) -> list:
    clauses = []
    if f.search:
        like = f"%{f.search.strip()}%"
        clauses.append(or_(Order.order_number.ilike(like), Order.customer_name.ilike(like)))
    if f.status:
        clauses.append(Order.status == f.status)
    if f.customer_id:
        clauses.append(Order.customer_id == f.customer_id)
    if f.date_from:
        clauses.append(Order.order_date >= f.date_from)
    if f.date_to:
        clauses.append(Order.order_date <= f.date_to)
    return clauses


def price_update_date_clauses(date_from: date, date_to: date) -> list:
    # Whole days on both ends
    start = datetime.combine(date_from, time.min)
    end = datetime.combine(date_to + timedelta(days=1), time.min)
    return [PriceUpdate.created_at >= start, PriceUpdate.created_at < end]
