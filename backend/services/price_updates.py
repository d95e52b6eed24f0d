# backend/services/price_updates.py
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from models.price_update import PriceUpdate
from models.product import Product, ProductDiscount
from repositories.filters import ProductFilter
from repositories.price_update import PriceUpdateRepository
from repositories.product import ProductDiscountRepository, ProductRepository
from services import pricing
from utils.audit import write_log
from utils.errors import AppError, BusinessError

logger = logging.getLogger(__name__)

DISCOUNT_TYPES = {"percentage", "fixed"}


def validate_discount(regular_price, discount_type: Optional[str], discount_value,
                      start_date: Optional[date] = None, end_date: Optional[date] = None) -> None:
    """Percentage within [0, 100]; fixed amount not above the regular price."""
    if not discount_type or discount_type == "none":
        return
    if discount_type not in DISCOUNT_TYPES:
        raise BusinessError("Invalid discount type", {"discount_type": ["Must be none, percentage or fixed"]}, status_code=422)
    if discount_value is None:
        raise BusinessError("Discount value is required", {"discount_value": ["Discount value is required"]}, status_code=422)

    value = pricing.to_decimal(discount_value)
    if value < 0:
        raise BusinessError("Discount value must be positive", {"discount_value": ["Must be at least 0"]}, status_code=422)
    if discount_type == "percentage" and value > 100:
        raise BusinessError("Percentage discount cannot exceed 100", {"discount_value": ["Must be between 0 and 100"]}, status_code=422)
    if discount_type == "fixed" and value > pricing.to_decimal(regular_price):
        raise BusinessError(
            "Fixed discount cannot exceed the regular price",
            {"discount_value": ["Must not exceed the regular price"]},
            status_code=422,
        )
    if start_date and end_date and end_date < start_date:
        raise BusinessError("Discount end date is before its start date", {"end_date": ["Must be on or after start date"]}, status_code=422)


def price_snapshot(product: Product) -> dict:
    discount = pricing.active_discount(product)
    return {
        "regular_price": pricing.to_money(product.regular_price),
        "stock_quantity": pricing.to_decimal(product.stock_quantity),
        "discount_type": discount.discount_type if discount else None,
        "discount_value": pricing.to_money(discount.discount_value) if discount else None,
    }


def set_discount(db: Session, product: Product, discount_type: Optional[str], discount_value=None,
                 start_date: Optional[date] = None, end_date: Optional[date] = None) -> Optional[ProductDiscount]:
    """Deactivate current discounts and, unless type is none, add the new one."""
    ProductDiscountRepository(db).deactivate_all(product.id)
    discount = None
    if discount_type and discount_type != "none":
        discount = ProductDiscount(
            discount_type=discount_type,
            discount_value=pricing.to_money(discount_value),
            start_date=start_date,
            end_date=end_date,
            status="active",
        )
        product.discounts.append(discount)
    db.flush()
    db.refresh(product)
    return discount


def record_price_update(db: Session, product: Product, old: dict, user_id: Optional[int]) -> Optional[PriceUpdate]:
    """Append a PriceUpdate row when price, stock or the active discount moved."""
    new = price_snapshot(product)
    if old == new:
        return None
    entry = PriceUpdate(
        product_id=product.id,
        old_regular_price=old["regular_price"],
        new_regular_price=new["regular_price"],
        old_discount_type=old["discount_type"],
        new_discount_type=new["discount_type"],
        old_discount_value=old["discount_value"],
        new_discount_value=new["discount_value"],
        old_stock_quantity=old["stock_quantity"],
        new_stock_quantity=new["stock_quantity"],
        new_selling_price=pricing.selling_price(product),
        updated_by=user_id,
    )
    db.add(entry)
    db.flush()
    return entry


class PriceUpdateService:
    def __init__(self, db: Session):
        self.db = db
        self.products = ProductRepository(db)
        self.updates = PriceUpdateRepository(db)

    def bulk_update(self, updates: List[dict], user_id: Optional[int]) -> dict:
        """Apply several price/stock/discount edits in one transaction.

        A failing row (unknown product, invalid discount) is reported in
        ``errors`` and skipped; the other rows are still committed.
        """
        results, errors = [], []
        if not updates:
            return {"updated": 0, "errors": [], "results": []}

        try:
            for index, update in enumerate(updates):
                try:
                    results.append(self._apply(update, user_id))
                except AppError as e:
                    logger.warning(f"Bulk price update skipped product {update.get('product_id')}: {e.message}")
                    errors.append({"index": index, "product_id": update.get("product_id"), "error": e.message})

            write_log(
                self.db, user_id=user_id, action="PRICE_BULK_UPDATE", resource="price_updates", commit=False,
                meta={"rows": len(updates), "changed": sum(1 for r in results if r["updated"]), "errors": len(errors)},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        return {"updated": len(results), "errors": errors, "results": results}

    def _apply(self, update: dict, user_id: Optional[int]) -> dict:
        product = self.products.find_or_fail_with_lock(update["product_id"])
        old = price_snapshot(product)

        new_price = update.get("regular_price")
        new_stock = update.get("stock_quantity")
        discount_type = update.get("discount_type")

        # Validate everything before touching the row
        effective_price = new_price if new_price is not None else product.regular_price
        if new_price is not None and pricing.to_decimal(new_price) < 0:
            raise BusinessError("Regular price must be at least 0")
        if new_stock is not None and pricing.to_decimal(new_stock) < 0:
            raise BusinessError("Stock quantity must be at least 0")
        validate_discount(effective_price, discount_type, update.get("discount_value"),
                          update.get("start_date"), update.get("end_date"))
        if not discount_type and new_price is not None and old["discount_type"] == "fixed":
            validate_discount(new_price, "fixed", old["discount_value"])

        price_changed = new_price is not None and pricing.to_money(new_price) != old["regular_price"]
        stock_changed = new_stock is not None and pricing.to_decimal(new_stock) != old["stock_quantity"]

        if price_changed:
            product.regular_price = pricing.to_money(new_price)
        if stock_changed:
            product.stock_quantity = new_stock
        if discount_type:
            set_discount(self.db, product, discount_type, update.get("discount_value"),
                         update.get("start_date"), update.get("end_date"))
        if price_changed or stock_changed or discount_type:
            product.updated_by = user_id
            self.db.flush()

        entry = record_price_update(self.db, product, old, user_id)
        new = price_snapshot(product)
        discount_changed = (old["discount_type"], old["discount_value"]) != (new["discount_type"], new["discount_value"])

        return {
            "product_id": product.id,
            "product_name": product.name,
            "updated": entry is not None,
            "new_selling_price": pricing.selling_price(product),
            "changes": {"price": price_changed, "stock": stock_changed, "discount": discount_changed},
        }

    def products_for_update(self, search: Optional[str] = None, category_id=None,
                            product_type: Optional[str] = None) -> List[Product]:
        f = ProductFilter(search=search, category_id=category_id, status="active", product_type=product_type)
        return self.products.filtered(f).order_by(Product.name).all()

    def history(self, product_id: int, limit: int = 50) -> List[PriceUpdate]:
        self.products.find_or_fail(product_id)
        return self.updates.history_for_product(product_id, limit)

    def by_date_range(self, date_from: date, date_to: date) -> List[PriceUpdate]:
        if date_to < date_from:
            raise BusinessError("End date must be on or after start date", {"end_date": ["Must be on or after start date"]}, status_code=422)
        return self.updates.by_date_range(date_from, date_to)

    def recent(self, limit: int = 20) -> List[PriceUpdate]:
        return self.updates.recent(limit)

    def counts(self) -> dict:
        today = datetime.combine(date.today(), datetime.min.time())
        week_start = today - timedelta(days=today.weekday())
        return {
            "total": self.updates.count(),
            "today": self.updates.count_since(today),
            "this_week": self.updates.count_since(week_start),
        }
