# backend/routes/orders.py
import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from database import get_db
from models.order import OrderStatus
from models.users import User
from repositories.filters import OrderFilter
from schemas.common import Envelope, Page, ok, paginated
from schemas.order import OrderOut, OrderStatusPatch
from services.orders import OrderService
from services.pdf import PdfService
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/orders", tags=["Orders"])
logger = logging.getLogger(__name__)


@router.get("", response_model=Page[OrderOut])
def list_orders(
    search: Optional[str] = Query(None),
    status: Optional[OrderStatus] = Query(None),
    customer_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    f = OrderFilter(search, status.value if status else None, customer_id, date_from, date_to)
    items, total = OrderService(db).paginate(f, page, per_page)
    return paginated(items, total, page, per_page)


@router.get("/recent", response_model=Envelope[List[OrderOut]])
def recent_orders(
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok(OrderService(db).recent(limit))


@router.get("/{order_id}", response_model=Envelope[OrderOut])
def get_order(order_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok(OrderService(db).show(order_id))


@router.get("/{order_id}/pdf")
def order_pdf(order_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    order = OrderService(db).show(order_id)
    lines = [
        {"name": i.product_name, "quantity": i.quantity, "unit": i.unit, "price": i.price, "subtotal": i.subtotal}
        for i in order.items
    ]
    totals = {"subtotal": order.subtotal, "discount": order.discount_amount, "total": order.total}
    customer = {"name": order.customer_name, "phone": order.customer_phone, "address": order.customer_address}
    path = PdfService(db).order_pdf(lines, totals, order.order_number, customer)
    return FileResponse(path, media_type="application/pdf", filename=f"{order.order_number}.pdf")


# Admin status change; only forward transitions or cancellation are accepted
@router.patch("/{order_id}/status", response_model=Envelope[OrderOut])
def update_order_status(
    order_id: int, payload: OrderStatusPatch,
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    order = OrderService(db).update_status(order_id, payload.status, current_user.id, payload.admin_notes)
    logger.info(f"Order {order.order_number} moved to {order.status} by user {current_user.id}")
    return ok(order, "Order status updated successfully")
