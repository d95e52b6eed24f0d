# backend/services/customers.py
from typing import Optional

from sqlalchemy.orm import Session

from models.customer import Customer
from repositories.customer import CustomerRepository
from repositories.filters import CustomerFilter
from utils import phone
from utils.errors import BusinessError
from utils.helpers import normalize_input, toggle_status


class CustomerService:
    def __init__(self, db: Session):
        self.db = db
        self.customers = CustomerRepository(db)

    def paginate(self, f: CustomerFilter, page: int = 1, per_page: int = 15):
        return self.customers.paginate(self.customers.filtered(f), page, per_page)

    def show(self, customer_id: int) -> Customer:
        return self.customers.find_or_fail(customer_id)

    def _prepare(self, data: dict, customer_id: Optional[int] = None) -> dict:
        data = normalize_input(data)
        if "whatsapp_number" in data:
            number = phone.normalize(data["whatsapp_number"])
            if not phone.validate(number):
                raise BusinessError(
                    "Invalid WhatsApp number",
                    {"whatsapp_number": ["Please enter a valid phone number in international format (e.g. +971501234567)"]},
                    status_code=422,
                )
            if self.customers.by_number(number, exclude_id=customer_id):
                raise BusinessError(
                    "WhatsApp number already exists",
                    {"whatsapp_number": ["The WhatsApp number has already been taken"]},
                    status_code=422,
                )
            data["whatsapp_number"] = number
        return data

    def create(self, data: dict, user_id: Optional[int]) -> Customer:
        data = self._prepare(data)
        if data.get("active") is None:
            data["active"] = True
        customer = self.customers.create(**data, created_by=user_id, updated_by=user_id)
        self.db.commit()
        self.db.refresh(customer)
        return customer

    def update(self, customer_id: int, data: dict, user_id: Optional[int]) -> Customer:
        customer = self.customers.find_or_fail(customer_id)
        data = self._prepare(data, customer.id)
        self.customers.update(customer, **data, updated_by=user_id)
        self.db.commit()
        self.db.refresh(customer)
        return customer

    def delete(self, customer_id: int) -> None:
        customer = self.customers.find_or_fail(customer_id)
        self.customers.delete(customer)
        self.db.commit()

    def toggle_status(self, customer_id: int, user_id: Optional[int]) -> Customer:
        customer = self.customers.find_or_fail(customer_id)
        toggle_status(customer, "active")
        customer.updated_by = user_id
        self.db.commit()
        self.db.refresh(customer)
        return customer
