# backend/services/categories.py
import logging
from typing import List, Optional

from fastapi import UploadFile
from sqlalchemy.orm import Session

from models.category import Category
from models.product import Product
from repositories.category import CategoryRepository
from repositories.filters import CategoryFilter, ProductFilter, product_clauses
from utils.errors import BusinessError
from utils.helpers import normalize_input, toggle_status
from utils.uploads import delete_image, replace_image, save_image

logger = logging.getLogger(__name__)


class CategoryService:
    def __init__(self, db: Session):
        self.db = db
        self.categories = CategoryRepository(db)

    def paginate(self, f: CategoryFilter, page: int = 1, per_page: int = 15):
        return self.categories.paginate(self.categories.filtered(f), page, per_page)

    def show(self, category_id: int) -> Category:
        return self.categories.find_or_fail(category_id)

    def _check_name(self, name: str, exclude_id: Optional[int] = None) -> None:
        if self.categories.by_name(name, exclude_id):
            raise BusinessError("Category name already exists", {"name": ["The name has already been taken"]}, status_code=422)

    def _check_parent(self, parent_id: Optional[int], category_id: Optional[int] = None) -> None:
        if parent_id is None:
            return
        if parent_id == category_id:
            raise BusinessError("A category cannot be its own parent", {"parent_id": ["Invalid parent"]}, status_code=422)
        self.categories.find_or_fail(parent_id)

    def create(self, data: dict, image: Optional[UploadFile] = None) -> Category:
        data = normalize_input(data)
        self._check_name(data["name"])
        self._check_parent(data.get("parent_id"))
        if image:
            data["image"] = save_image(image, "categories")

        category = self.categories.create(**data)
        self.db.commit()
        self.db.refresh(category)
        logger.info(f"Category {category.id} created")
        return category

    def update(self, category_id: int, data: dict, image: Optional[UploadFile] = None,
               remove_image: bool = False) -> Category:
        category = self.categories.find_or_fail(category_id)
        data = normalize_input(data)
        if data.get("name"):
            self._check_name(data["name"], category.id)
        if "parent_id" in data:
            self._check_parent(data["parent_id"], category.id)

        if image:
            data["image"] = replace_image(image, "categories", category.image)
        elif remove_image and category.image:
            delete_image(category.image)
            data["image"] = None

        self.categories.update(category, **data)
        self.db.commit()
        self.db.refresh(category)
        return category

    def delete(self, category_id: int) -> None:
        category = self.categories.find_or_fail(category_id)
        if self.categories.has_products(category.id):
            count = self.db.query(Product).filter(Product.category_id == category.id).count()
            raise BusinessError(
                "Cannot delete category with existing products",
                {"category_id": [f"This category has {count} products. Please reassign or delete products first."]},
                status_code=422,
            )
        image = category.image
        self.categories.delete(category)
        self.db.commit()
        delete_image(image)

    def toggle_status(self, category_id: int) -> Category:
        category = self.categories.find_or_fail(category_id)
        toggle_status(category)
        self.db.commit()
        self.db.refresh(category)
        return category

    def reorder(self, order: List[dict]) -> None:
        """Set sort_order from [{"id", "sort_order"}]; missing sort_order uses list position."""
        for position, entry in enumerate(order):
            category = self.categories.find_or_fail(entry["id"])
            sort_order = entry.get("sort_order")
            category.sort_order = position if sort_order is None else sort_order
        self.db.commit()

    def search(self, query: str, limit: int = 20) -> List[Category]:
        return self.categories.filtered(CategoryFilter(search=query)).limit(limit).all()

    def tree(self) -> List[Category]:
        return self.categories.roots()

    def products(self, category_id: int, f: ProductFilter, page: int = 1, per_page: int = 15):
        category = self.categories.find_or_fail(category_id)
        f.category_id = category.id
        q = self.db.query(Product).filter(*product_clauses(f)).order_by(Product.name)
        return self.categories.paginate(q, page, per_page)
