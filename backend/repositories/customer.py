# backend/repositories/customer.py
from typing import List, Optional

from models.customer import Customer
from repositories.base import BaseRepository
from repositories.filters import CustomerFilter, customer_clauses


class CustomerRepository(BaseRepository[Customer]):
    model = Customer
    label = "Customer"

    def filtered(self, f: CustomerFilter):
        return self.query().filter(*customer_clauses(f)).order_by(Customer.name)

    def by_number(self, whatsapp_number: str, exclude_id: Optional[int] = None) -> Optional[Customer]:
        q = self.query().filter(Customer.whatsapp_number == whatsapp_number)
        if exclude_id:
            q = q.filter(Customer.id != exclude_id)
        return q.first()

    def active(self) -> List[Customer]:
        return self.query().filter(Customer.active.is_(True)).order_by(Customer.id).all()

    def by_ids(self, ids) -> List[Customer]:
        ids = list(ids or [])
        if not ids:
            return []
        return self.query().filter(Customer.id.in_(ids)).order_by(Customer.id).all()
