# backend/routes/customers.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from repositories.filters import CustomerFilter
from schemas.common import Envelope, Page, ok, paginated
from schemas.customer import CustomerCreate, CustomerOut, CustomerUpdate
from services.customers import CustomerService
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/customers", tags=["Customers"])


@router.get("", response_model=Page[CustomerOut])
def list_customers(
    search: Optional[str] = Query(None),
    active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = CustomerService(db).paginate(CustomerFilter(search, active), page, per_page)
    return paginated(items, total, page, per_page)


@router.get("/{customer_id}", response_model=Envelope[CustomerOut])
def get_customer(customer_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok(CustomerService(db).show(customer_id))


@router.post("", response_model=Envelope[CustomerOut], status_code=201)
def create_customer(
    payload: CustomerCreate, request: Request,
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    customer = CustomerService(db).create(payload.model_dump(), current_user.id)
    write_log(db, user_id=current_user.id, action="CUSTOMER_CREATE", resource="customers",
              ip=client_ip(request), meta={"id": customer.id})
    return ok(customer, "Customer created successfully")


@router.patch("/{customer_id}", response_model=Envelope[CustomerOut])
def update_customer(
    customer_id: int, payload: CustomerUpdate, request: Request,
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    data = payload.model_dump(exclude_unset=True)
    customer = CustomerService(db).update(customer_id, data, current_user.id)
    write_log(db, user_id=current_user.id, action="CUSTOMER_UPDATE", resource="customers",
              ip=client_ip(request), meta={"id": customer.id, "fields": sorted(data.keys())})
    return ok(customer, "Customer updated successfully")


@router.delete("/{customer_id}", response_model=Envelope[None])
def delete_customer(
    customer_id: int, request: Request,
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    CustomerService(db).delete(customer_id)
    write_log(db, user_id=current_user.id, action="CUSTOMER_DELETE", resource="customers",
              ip=client_ip(request), meta={"id": customer_id})
    return ok(message="Customer deleted successfully")


@router.post("/{customer_id}/toggle-status", response_model=Envelope[CustomerOut])
def toggle_customer_status(
    customer_id: int, request: Request,
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    customer = CustomerService(db).toggle_status(customer_id, current_user.id)
    write_log(db, user_id=current_user.id, action="CUSTOMER_TOGGLE", resource="customers",
              ip=client_ip(request), meta={"id": customer.id, "active": customer.active})
    return ok(customer, f"Customer {'activated' if customer.active else 'deactivated'} successfully")
