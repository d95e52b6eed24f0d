# backend/services/products.py
import logging
from datetime import date
from typing import List, Optional

from fastapi import UploadFile
from sqlalchemy.orm import Session

from config import settings
from models.product import Product, ProductVariation
from repositories.category import CategoryRepository
from repositories.filters import ProductFilter
from repositories.product import ProductRepository
from services import pricing
from services.price_updates import price_snapshot, record_price_update, set_discount, validate_discount
from services.units import normalize_unit
from utils.audit import write_log
from utils.errors import BusinessError
from utils.helpers import norm_code, normalize_input, toggle_status
from utils.uploads import delete_image, replace_image, save_image

logger = logging.getLogger(__name__)

SORTABLE = {
    "id": Product.id,
    "name": Product.name,
    "item_code": Product.item_code,
    "regular_price": Product.regular_price,
    "stock_quantity": Product.stock_quantity,
    "created_at": Product.created_at,
}
DISCOUNT_FIELDS = ("discount_type", "discount_value", "discount_start_date", "discount_end_date")


class ProductService:
    def __init__(self, db: Session):
        self.db = db
        self.products = ProductRepository(db)
        self.categories = CategoryRepository(db)

    def paginate(self, f: ProductFilter, page: int = 1, per_page: int = 15,
                 sort_by: str = "name", order: str = "asc", at: Optional[date] = None):
        q = self.products.filtered(f, today=at, low_stock_threshold=settings.LOW_STOCK_THRESHOLD)
        column = SORTABLE.get(sort_by, Product.name)
        q = q.order_by(column.desc() if order == "desc" else column.asc(), Product.id)
        return self.products.paginate(q, page, per_page)

    def show(self, product_id: int) -> Product:
        return self.products.find_or_fail(product_id)

    def _prepare(self, data: dict, product: Optional[Product] = None) -> dict:
        data = normalize_input(data)
        if "item_code" in data:
            data["item_code"] = norm_code(data["item_code"])
            if not data["item_code"]:
                raise BusinessError("Item code is required", {"item_code": ["The item code is required"]}, status_code=422)
            if self.products.by_code(data["item_code"], exclude_id=product.id if product else None):
                raise BusinessError("Item code already exists", {"item_code": ["The item code has already been taken"]}, status_code=422)

        if data.get("category_id") is not None:
            self.categories.find_or_fail(data["category_id"])

        if "stock_unit" in data:
            unit = normalize_unit(data["stock_unit"])
            if unit is None:
                raise BusinessError(f"Unknown unit {data['stock_unit']}", {"stock_unit": ["Unknown unit"]}, status_code=422)
            data["stock_unit"] = unit

        min_qty = data.get("min_order_quantity", product.min_order_quantity if product else None)
        max_qty = data.get("max_order_quantity", product.max_order_quantity if product else None)
        if min_qty is not None and max_qty is not None and pricing.to_decimal(max_qty) < pricing.to_decimal(min_qty):
            raise BusinessError(
                "Maximum order quantity must not be below the minimum",
                {"max_order_quantity": ["Must be greater than or equal to the minimum order quantity"]},
                status_code=422,
            )
        return data

    @staticmethod
    def _split_discount(data: dict) -> dict:
        return {key: data.pop(key) for key in DISCOUNT_FIELDS if key in data}

    def create(self, data: dict, user_id: Optional[int], image: Optional[UploadFile] = None) -> Product:
        data = dict(data)
        discount = self._split_discount(data)
        data = self._prepare(data)
        validate_discount(data["regular_price"], discount.get("discount_type"), discount.get("discount_value"),
                          discount.get("discount_start_date"), discount.get("discount_end_date"))

        if image:
            data["image"] = save_image(image, "products")

        product = self.products.create(**data, created_by=user_id, updated_by=user_id)
        old = {"regular_price": None, "stock_quantity": None, "discount_type": None, "discount_value": None}
        if discount.get("discount_type") and discount["discount_type"] != "none":
            set_discount(self.db, product, discount["discount_type"], discount.get("discount_value"),
                         discount.get("discount_start_date"), discount.get("discount_end_date"))
        record_price_update(self.db, product, old, user_id)

        write_log(self.db, user_id=user_id, action="PRODUCT_CREATE", resource="products", commit=False,
                  meta={"id": product.id, "item_code": product.item_code})
        self.db.commit()
        self.db.refresh(product)
        return product

    def update(self, product_id: int, data: dict, user_id: Optional[int],
               image: Optional[UploadFile] = None, remove_image: bool = False) -> Product:
        product = self.products.find_or_fail_with_lock(product_id)
        old = price_snapshot(product)

        data = dict(data)
        discount = self._split_discount(data)
        data = self._prepare(data, product)
        new_price = data.get("regular_price", product.regular_price)
        if discount.get("discount_type"):
            validate_discount(new_price, discount["discount_type"], discount.get("discount_value"),
                              discount.get("discount_start_date"), discount.get("discount_end_date"))
        elif "regular_price" in data and old["discount_type"] == "fixed":
            validate_discount(new_price, "fixed", old["discount_value"])

        if image:
            data["image"] = replace_image(image, "products", product.image)
        elif remove_image and product.image:
            delete_image(product.image)
            data["image"] = None

        self.products.update(product, **data, updated_by=user_id)
        if discount.get("discount_type"):
            set_discount(self.db, product, discount["discount_type"], discount.get("discount_value"),
                         discount.get("discount_start_date"), discount.get("discount_end_date"))
        record_price_update(self.db, product, old, user_id)

        write_log(self.db, user_id=user_id, action="PRODUCT_UPDATE", resource="products", commit=False,
                  meta={"id": product.id, "fields": sorted(data.keys())})
        self.db.commit()
        self.db.refresh(product)
        return product

    def delete(self, product_id: int, user_id: Optional[int]) -> None:
        product = self.products.find_or_fail(product_id)
        image = product.image
        self.products.delete(product)
        write_log(self.db, user_id=user_id, action="PRODUCT_DELETE", resource="products", commit=False,
                  meta={"id": product_id})
        self.db.commit()
        delete_image(image)

    def toggle_status(self, product_id: int, user_id: Optional[int]) -> Product:
        product = self.products.find_or_fail(product_id)
        toggle_status(product)
        product.updated_by = user_id
        self.db.commit()
        self.db.refresh(product)
        return product

    def variations(self, product_id: int) -> List[ProductVariation]:
        self.products.find_or_fail(product_id)
        return self.products.variations(product_id)

    def add_variation(self, product_id: int, data: dict) -> ProductVariation:
        product = self.products.find_or_fail(product_id)
        if data.get("sku") and self.db.query(ProductVariation).filter(ProductVariation.sku == data["sku"]).first():
            raise BusinessError("SKU already exists", {"sku": ["The SKU has already been taken"]}, status_code=422)
        variation = ProductVariation(**data)
        product.variations.append(variation)
        self.db.commit()
        self.db.refresh(variation)
        return variation
