# backend/routes/order_form.py
"""Public order form: pick products, review server-priced totals, confirm."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from database import get_db
from schemas.category import CategoryOut
from schemas.common import Envelope, ok
from schemas.order import ConfirmOrderRequest, OrderOut, OrderPdfRequest, ReviewOut, ReviewRequest
from schemas.product import OrderFormProduct
from services.orders import OrderService
from services.pdf import PdfService
from utils.audit import client_ip

router = APIRouter(tags=["Order form"])
logger = logging.getLogger(__name__)


def _review_payload(review, token: Optional[str]) -> dict:
    data = review.as_dict()
    data["cart_token"] = token
    return data


@router.get("/order-form")
def order_form(cart_token: Optional[str] = Query(None), db: Session = Depends(get_db)):
    service = OrderService(db)
    form = service.form_data()
    return ok({
        "categories": [CategoryOut.model_validate(c) for c in form["categories"]],
        "products": [OrderFormProduct.model_validate(p) for p in form["products"]],
        "selected": service.cart.items(cart_token),
    })


@router.post("/order-review", response_model=Envelope[ReviewOut])
def submit_review(payload: ReviewRequest, db: Session = Depends(get_db)):
    items = [item.model_dump() for item in payload.items]
    token, review = OrderService(db).save_review(payload.cart_token, items)
    return ok(_review_payload(review, token))


@router.get("/order-review", response_model=Envelope[ReviewOut])
def show_review(cart_token: Optional[str] = Query(None), db: Session = Depends(get_db)):
    review = OrderService(db).current_review(cart_token)
    return ok(_review_payload(review, cart_token))


@router.post("/order-form/pdf")
def review_pdf(payload: OrderPdfRequest, db: Session = Depends(get_db)):
    service = OrderService(db)
    if payload.items:
        review = service.review([item.model_dump() for item in payload.items])
    else:
        review = service.current_review(payload.cart_token)

    lines = [
        {
            "name": line.product.name,
            "quantity": line.quantity,
            "unit": line.unit,
            "price": line.breakdown["effective_price"],
            "subtotal": line.breakdown["subtotal"],
        }
        for line in review.lines
    ]
    totals = {"subtotal": review.subtotal, "discount": review.discount, "total": review.total}
    path = PdfService(db).order_pdf(lines, totals)
    return FileResponse(path, media_type="application/pdf", filename="order-summary.pdf")


@router.post("/order/confirmation", response_model=Envelope[OrderOut], status_code=201)
def confirm_order(payload: ConfirmOrderRequest, request: Request, db: Session = Depends(get_db)):
    details = payload.model_dump(exclude={"cart_token", "grand_total"})
    order = OrderService(db).confirm(payload.cart_token, details, payload.grand_total, client_ip(request))
    return ok(order, f"Order {order.order_number} placed successfully")


@router.get("/order/confirmation/{order_number}", response_model=Envelope[OrderOut])
def order_confirmation(order_number: str, db: Session = Depends(get_db)):
    return ok(OrderService(db).show_by_number(order_number))
