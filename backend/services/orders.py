# backend/services/orders.py
"""Order form review and confirmation.

Every monetary value stored on an order is derived here from the current
product rows. Totals submitted by the browser are only compared against the
derived ones and logged when they differ.
"""
import logging
import secrets
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.order import ORDER_STATUS_TRANSITIONS, Order, OrderItem, OrderStatus
from repositories.category import CategoryRepository
from repositories.customer import CustomerRepository
from repositories.filters import OrderFilter
from repositories.order import OrderRepository
from repositories.product import ProductRepository
from services import pricing
from services.cart import CartService
from services.units import UnitConversionError, is_known_unit, normalize_unit
from utils import phone
from utils.audit import write_log
from utils.errors import BusinessError, NotFoundError

logger = logging.getLogger(__name__)

ORDER_NUMBER_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"


def generate_order_number(now: Optional[datetime] = None) -> str:
    """ORD-YYYYMMDD-XXXXXX with a UTC date and six random base-32 characters."""
    now = now or datetime.now(timezone.utc)
    suffix = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(6))
    return f"ORD-{now:%Y%m%d}-{suffix}"


def _fmt_qty(value) -> str:
    return f"{pricing.to_decimal(value).normalize():f}"


@dataclass
class ReviewLine:
    product: object
    quantity: Decimal
    unit: str
    base_quantity: Decimal
    breakdown: dict

    def as_dict(self) -> dict:
        data = {
            "product_id": self.product.id,
            "name": self.product.name,
            "item_code": self.product.item_code,
            "category": self.product.category.name if self.product.category else None,
            "stock_unit": self.product.stock_unit,
        }
        data.update(self.breakdown)
        return data


@dataclass
class OrderReview:
    lines: List[ReviewLine] = field(default_factory=list)
    subtotal: Decimal = Decimal("0.00")
    discount: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")

    def as_dict(self) -> dict:
        return {
            "items": [line.as_dict() for line in self.lines],
            "subtotal": self.subtotal,
            "discount": self.discount,
            "total": self.total,
            "item_count": len(self.lines),
        }


class OrderService:
    def __init__(self, db: Session):
        self.db = db
        self.orders = OrderRepository(db)
        self.products = ProductRepository(db)
        self.categories = CategoryRepository(db)
        self.customers = CustomerRepository(db)
        self.cart = CartService(db)

    # ---- order form ----

    def form_data(self) -> dict:
        return {
            "categories": self.categories.active_ordered(),
            "products": self.products.active_for_form(),
        }

    def review(self, items: List[dict], at=None) -> OrderReview:
        """Validate a submitted selection and price it from the database.

        Lines with a quantity of zero are ignored. Several lines for the same
        product are merged into one before any limit is checked. Each rule is
        checked over the whole batch so one error names every offending product.
        """
        selected = [i for i in items if i.get("quantity") is not None and pricing.to_decimal(i["quantity"]) > 0]
        if not selected:
            raise BusinessError("Select at least one product", {"items": ["Select at least one product"]})

        ids = list(dict.fromkeys(i["product_id"] for i in selected))
        products = {p.id: p for p in self.products.find_many(ids)}

        unavailable = [pid for pid in ids if pid not in products or products[pid].status != "active"]
        if unavailable:
            raise BusinessError(
                f"Some selected products are not available: {', '.join(str(pid) for pid in unavailable)}",
                {f"products.{pid}": ["Product is not available"] for pid in unavailable},
                status_code=422,
            )

        merged: Dict[int, ReviewLine] = {}
        unit_errors: Dict[str, List[str]] = {}
        for item in selected:
            product = products[item["product_id"]]
            unit = item.get("unit") or product.stock_unit
            quantity = pricing.to_decimal(item["quantity"])
            try:
                if not is_known_unit(unit):
                    raise UnitConversionError(f"Unknown unit {unit} for product {product.name}")
                base_quantity = pricing.quantity_in_stock_unit(product, quantity, unit)
            except UnitConversionError as e:
                unit_errors[f"products.{product.id}"] = [e.message]
                continue
            line = merged.get(product.id)
            if line is None:
                merged[product.id] = ReviewLine(product, quantity, unit, base_quantity, {})
            elif normalize_unit(line.unit) == normalize_unit(unit):
                line.quantity += quantity
                line.base_quantity += base_quantity
            else:
                # Mixed units for one product are summed in its stock unit
                line.base_quantity += base_quantity
                line.quantity = line.base_quantity
                line.unit = product.stock_unit

        if unit_errors:
            raise UnitConversionError("Some selected units cannot be used for these products", unit_errors)

        lines = list(merged.values())
        for line in lines:
            line.breakdown = pricing.price_breakdown(line.product, line.quantity, line.unit, at)

        self._check_limits(lines)

        totals = pricing.cart_totals([(l.product, l.quantity, l.unit) for l in lines], at)
        return OrderReview(lines, totals["subtotal"], totals["discount"], totals["total"])

    def _check_limits(self, lines: List[ReviewLine]) -> None:
        below_min = [
            l for l in lines
            if l.product.min_order_quantity is not None and l.base_quantity < l.product.min_order_quantity
        ]
        if below_min:
            ids = ", ".join(str(l.product.id) for l in below_min)
            raise BusinessError(
                f"Minimum order quantity not met for product(s): {ids}",
                {
                    f"products.{l.product.id}": [
                        f"Minimum order quantity for {l.product.name} is "
                        f"{_fmt_qty(l.product.min_order_quantity)} {l.product.stock_unit}"
                    ]
                    for l in below_min
                },
                status_code=422,
            )

        errors: Dict[str, List[str]] = {}
        for l in lines:
            messages = []
            if l.product.max_order_quantity is not None and l.base_quantity > l.product.max_order_quantity:
                messages.append(
                    f"Maximum order quantity for {l.product.name} is "
                    f"{_fmt_qty(l.product.max_order_quantity)} {l.product.stock_unit}"
                )
            if l.base_quantity > pricing.to_decimal(l.product.stock_quantity):
                messages.append(
                    f"Only {_fmt_qty(l.product.stock_quantity)} {l.product.stock_unit} of {l.product.name} in stock"
                )
            if messages:
                errors[f"products.{l.product.id}"] = messages
        if errors:
            raise BusinessError("Some quantities cannot be ordered", errors, status_code=422)

    def save_review(self, token: Optional[str], items: List[dict], at=None):
        """Review a submission and store it as the cart; returns (token, review)."""
        review = self.review(items, at)
        token = self.cart.save(
            token,
            [{"product_id": l.product.id, "quantity": l.quantity, "unit": l.unit} for l in review.lines],
        )
        return token, review

    def current_review(self, token: Optional[str], at=None) -> OrderReview:
        return self.review(self.cart.require(token), at)

    # ---- confirmation ----

    def confirm(self, token: Optional[str], details: dict, client_grand_total=None, ip: Optional[str] = None) -> Order:
        review = self.current_review(token)
        if review.total <= 0:
            raise BusinessError("Order total must be greater than zero", {"grand_total": ["Order total must be greater than zero"]})

        if client_grand_total is not None and pricing.to_money(client_grand_total) != review.total:
            logger.warning(
                f"Client grand total {client_grand_total} differs from derived total {review.total}; "
                f"storing the derived value"
            )

        order = self._persist(review, details)
        self.cart.clear(token)

        write_log(
            self.db, user_id=None, action="ORDER_CONFIRM", resource="orders", ip=ip,
            meta={"order_number": order.order_number, "total": str(order.total), "items": len(review.lines)},
        )
        logger.info(f"Order {order.order_number} confirmed with total {order.total}")
        return order

    def _persist(self, review: OrderReview, details: dict) -> Order:
        # Unique constraint on order_number; one fresh number after a collision
        for attempt in range(2):
            try:
                order = self._build_order(review, details, generate_order_number())
                self.db.commit()
                return order
            except IntegrityError:
                self.db.rollback()
                if attempt:
                    raise
                logger.warning("Order number collision, generating a new one")

    def _build_order(self, review: OrderReview, details: dict, order_number: str) -> Order:
        customer = self._link_customer(details)
        order = Order(
            order_number=order_number,
            customer_id=customer.id if customer else None,
            customer_name=details.get("customer_name"),
            customer_email=details.get("email"),
            customer_phone=phone.normalize(details.get("whatsapp")),
            customer_address=details.get("address"),
            order_date=date.today(),
            delivery_date=details.get("delivery_date"),
            subtotal=review.subtotal,
            discount_amount=review.discount,
            total=review.total,
            status=OrderStatus.PENDING.value,
            notes=details.get("notes"),
        )
        for line in review.lines:
            b = line.breakdown
            order.items.append(OrderItem(
                product_id=line.product.id,
                product_name=line.product.name,
                product_code=line.product.item_code,
                quantity=line.quantity,
                unit=line.unit,
                price=b["effective_price"],
                regular_price=b["regular_price"],
                discount_type=b["discount_type"],
                discount_value=b["discount_value"],
                discount_amount=b["discount_amount"],
                subtotal=b["subtotal"],
                total=b["subtotal"],
            ))
        self.db.add(order)
        self.db.flush()
        return order

    def _link_customer(self, details: dict):
        number = phone.normalize(details.get("whatsapp"))
        if not number:
            return None
        customer = self.customers.by_number(number)
        if customer is None:
            customer = self.customers.create(
                name=details.get("customer_name"),
                whatsapp_number=number,
                address=details.get("address"),
                active=True,
            )
        elif not customer.address and details.get("address"):
            customer.address = details.get("address")
        return customer

    # ---- admin ----

    def paginate(self, f: OrderFilter, page: int = 1, per_page: int = 15):
        return self.orders.paginate(self.orders.filtered(f), page, per_page)

    def show(self, order_id: int) -> Order:
        return self.orders.find_or_fail(order_id)

    def show_by_number(self, order_number: str) -> Order:
        order = self.orders.by_number(order_number)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def recent(self, limit: int = 10) -> List[Order]:
        return self.orders.recent(limit)

    def update_status(self, order_id: int, new_status: str, user_id: Optional[int] = None,
                      admin_notes: Optional[str] = None) -> Order:
        order = self.orders.find_or_fail_with_lock(order_id)
        try:
            target = OrderStatus(new_status)
        except ValueError:
            raise BusinessError(f"Unknown order status {new_status}", {"status": ["Invalid status"]}, status_code=422)

        current = OrderStatus(order.status)
        if target not in ORDER_STATUS_TRANSITIONS[current]:
            raise BusinessError(
                f"Cannot change order status from {current.value} to {target.value}",
                {"status": [f"Not allowed from {current.value}"]},
                status_code=422,
            )

        order.status = target.value
        order.updated_by = user_id
        if admin_notes is not None:
            order.admin_notes = admin_notes
        write_log(
            self.db, user_id=user_id, action="ORDER_STATUS", resource="orders", commit=False,
            meta={"order_id": order.id, "from": current.value, "to": target.value},
        )
        self.db.commit()
        self.db.refresh(order)
        return order
