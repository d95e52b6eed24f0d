# backend/repositories/category.py
from typing import List, Optional

from sqlalchemy import func

from models.category import Category
from models.product import Product
from repositories.base import BaseRepository
from repositories.filters import CategoryFilter, category_clauses


class CategoryRepository(BaseRepository[Category]):
    model = Category
    label = "Category"

    def filtered(self, f: CategoryFilter):
        return self.query().filter(*category_clauses(f)).order_by(Category.sort_order, Category.name)

    def by_name(self, name: str, exclude_id: Optional[int] = None) -> Optional[Category]:
        q = self.query().filter(func.lower(Category.name) == name.strip().lower())
        if exclude_id:
            q = q.filter(Category.id != exclude_id)
        return q.first()

    def roots(self) -> List[Category]:
        return self.query().filter(Category.parent_id.is_(None)).order_by(Category.sort_order, Category.name).all()

    def active_ordered(self) -> List[Category]:
        return self.query().filter(Category.status == "active").order_by(Category.sort_order, Category.name).all()

    def has_products(self, category_id: int) -> bool:
        return self.db.query(Product.id).filter(Product.category_id == category_id).first() is not None
