# backend/services/dashboard.py
from sqlalchemy.orm import Session

from config import settings
from models.category import Category
from models.customer import Customer
from models.product import Product
from repositories.category import CategoryRepository
from repositories.customer import CustomerRepository
from repositories.filters import ProductFilter, product_clauses
from repositories.order import OrderRepository
from repositories.price_update import PriceUpdateRepository
from repositories.product import ProductRepository
from services import pricing
from services.price_updates import PriceUpdateService


def _split(total: int, active: int) -> dict:
    return {"total": total, "active": active, "inactive": total - active}


class DashboardService:
    def __init__(self, db: Session):
        self.db = db
        self.products = ProductRepository(db)
        self.categories = CategoryRepository(db)
        self.customers = CustomerRepository(db)
        self.orders = OrderRepository(db)
        self.price_updates = PriceUpdateRepository(db)

    def statistics(self) -> dict:
        low_stock = self.products.count(
            product_clauses(ProductFilter(status="active", stock_status="low_stock"),
                            low_stock_threshold=settings.LOW_STOCK_THRESHOLD)
        )
        product_types = {"daily": 0, "standard": 0}
        product_types.update(self.products.count_by_type())

        orders_by_status = self.orders.count_by_status()

        return {
            "statistics": {
                "products": _split(self.products.count(), self.products.count([Product.status == "active"])),
                "categories": _split(self.categories.count(), self.categories.count([Category.status == "active"])),
                "customers": _split(self.customers.count(), self.customers.count([Customer.active.is_(True)])),
                "price_updates": PriceUpdateService(self.db).counts(),
                "low_stock_products": low_stock,
                "product_types": product_types,
                "orders": {
                    "total": sum(orders_by_status.values()),
                    "by_status": orders_by_status,
                    "revenue": pricing.to_money(self.orders.revenue()),
                },
            },
            "recent_price_changes": self.price_updates.recent(10),
        }
