# backend/repositories/price_update.py
from datetime import date, datetime
from typing import List

from sqlalchemy.orm import selectinload

from models.price_update import PriceUpdate
from repositories.base import BaseRepository
from repositories.filters import price_update_date_clauses


class PriceUpdateRepository(BaseRepository[PriceUpdate]):
    model = PriceUpdate
    label = "Price update"

    def query(self):
        return super().query().options(selectinload(PriceUpdate.product), selectinload(PriceUpdate.updater))

    def history_for_product(self, product_id: int, limit: int = 50) -> List[PriceUpdate]:
        return (
            self.query()
            .filter(PriceUpdate.product_id == product_id)
            .order_by(PriceUpdate.created_at.desc(), PriceUpdate.id.desc())
            .limit(limit)
            .all()
        )

    def by_date_range(self, date_from: date, date_to: date) -> List[PriceUpdate]:
        return (
            self.query()
            .filter(*price_update_date_clauses(date_from, date_to))
            .order_by(PriceUpdate.created_at.desc(), PriceUpdate.id.desc())
            .all()
        )

    def recent(self, limit: int = 20) -> List[PriceUpdate]:
        return self.query().order_by(PriceUpdate.created_at.desc(), PriceUpdate.id.desc()).limit(limit).all()

    def count_since(self, since: datetime) -> int:
        return self.query().filter(PriceUpdate.created_at >= since).count()
