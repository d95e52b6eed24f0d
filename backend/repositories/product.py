# backend/repositories/product.py
from datetime import date
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import selectinload

from models.product import Product, ProductDiscount, ProductVariation
from repositories.base import BaseRepository
from repositories.filters import ProductFilter, product_clauses


class ProductRepository(BaseRepository[Product]):
    model = Product
    label = "Product"

    def query(self):
        return super().query().options(selectinload(Product.discounts), selectinload(Product.category))

    def filtered(self, f: ProductFilter, *, today: Optional[date] = None, low_stock_threshold: int = 10):
        return self.query().filter(*product_clauses(f, today=today, low_stock_threshold=low_stock_threshold))

    def by_code(self, item_code: str, exclude_id: Optional[int] = None) -> Optional[Product]:
        q = super().query().filter(Product.item_code == item_code)
        if exclude_id:
            q = q.filter(Product.id != exclude_id)
        return q.first()

    def active_for_form(self) -> List[Product]:
        return self.query().filter(Product.status == "active").order_by(Product.category_id, Product.name).all()

    def count_by_type(self) -> dict:
        rows = self.db.query(Product.product_type, func.count(Product.id)).group_by(Product.product_type).all()
        return {product_type: total for product_type, total in rows}

    def variations(self, product_id: int) -> List[ProductVariation]:
        return (
            self.db.query(ProductVariation)
            .filter(ProductVariation.product_id == product_id)
            .order_by(ProductVariation.quantity)
            .all()
        )


class ProductDiscountRepository(BaseRepository[ProductDiscount]):
    model = ProductDiscount
    label = "Discount"

    def deactivate_all(self, product_id: int) -> int:
        return (
            self.query()
            .filter(ProductDiscount.product_id == product_id, ProductDiscount.status == "active")
            .update({ProductDiscount.status: "inactive"}, synchronize_session="fetch")
        )
