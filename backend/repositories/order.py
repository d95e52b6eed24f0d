# backend/repositories/order.py
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import selectinload

from models.order import Order, OrderStatus
from repositories.base import BaseRepository
from repositories.filters import OrderFilter, order_clauses


class OrderRepository(BaseRepository[Order]):
    model = Order
    label = "Order"

    def query(self):
        return super().query().options(selectinload(Order.items))

    def filtered(self, f: OrderFilter):
        return self.query().filter(*order_clauses(f)).order_by(Order.created_at.desc(), Order.id.desc())

    def by_number(self, order_number: str) -> Optional[Order]:
        return self.query().filter(Order.order_number == order_number).first()

    def number_exists(self, order_number: str) -> bool:
        return self.db.query(Order.id).filter(Order.order_number == order_number).first() is not None

    def recent(self, limit: int = 10) -> List[Order]:
        return self.query().order_by(Order.id.desc()).limit(limit).all()

    def count_by_status(self) -> Dict[str, int]:
        rows = self.db.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
        return {status: total for status, total in rows}

    def revenue(self):
        return (
            self.db.query(func.coalesce(func.sum(Order.total), 0))
            .filter(Order.status != OrderStatus.CANCELLED.value)
            .scalar()
        )
