# backend/services/cart.py
import logging
import secrets
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from config import settings
from models.cart import Cart, CartItem
from repositories.cart import CartRepository
from repositories.product import ProductRepository
from services import pricing
from utils.errors import BusinessError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class CartLine:
    """A cart item joined with the current product row and its price."""

    def __init__(self, product, quantity, unit: str, at=None):
        self.product = product
        self.quantity = pricing.to_decimal(quantity)
        self.unit = unit
        self.price = pricing.selling_price(product, at)
        self.subtotal = pricing.price_for_quantity(product, self.quantity, unit, at)

    def as_dict(self) -> dict:
        return {
            "product_id": self.product.id,
            "name": self.product.name,
            "item_code": self.product.item_code,
            "quantity": self.quantity,
            "unit": self.unit,
            "stock_unit": self.product.stock_unit,
            "regular_price": pricing.to_money(self.product.regular_price),
            "price": self.price,
            "has_discount": pricing.has_discount(self.product),
            "subtotal": self.subtotal,
        }


class CartService:
    """Pre-confirmation selection stored in the carts table and addressed by token."""

    def __init__(self, db: Session):
        self.db = db
        self.carts = CartRepository(db)
        self.products = ProductRepository(db)

    def _expiry(self) -> datetime:
        return _utcnow() + timedelta(minutes=settings.CART_TTL_MINUTES)

    def _is_expired(self, cart: Cart) -> bool:
        return _as_aware(cart.expires_at) <= _utcnow()

    def _live_cart(self, token: Optional[str]) -> Optional[Cart]:
        if not token:
            return None
        cart = self.carts.by_token(token)
        if cart is None or self._is_expired(cart):
            return None
        return cart

    def _get_or_create(self, token: Optional[str]) -> Cart:
        cart = self.carts.by_token(token) if token else None
        if cart is None:
            cart = self.carts.create(token=secrets.token_urlsafe(24), expires_at=self._expiry())
        elif self._is_expired(cart):
            cart.items.clear()
            self.db.flush()
        cart.expires_at = self._expiry()
        return cart

    def save(self, token: Optional[str], items: Iterable[dict]) -> str:
        """Replace the whole selection; items are {product_id, quantity, unit}."""
        cart = self._get_or_create(token)
        cart.items.clear()
        self.db.flush()
        # Later lines for the same product replace earlier ones
        merged = {item["product_id"]: item for item in items}
        for item in merged.values():
            cart.items.append(CartItem(product_id=item["product_id"], quantity=item["quantity"], unit=item["unit"]))
        self.db.commit()
        logger.info(f"Cart {cart.id} saved with {len(cart.items)} item(s)")
        return cart.token

    def add_item(self, token: Optional[str], product_id: int, quantity, unit: Optional[str] = None) -> str:
        product = self.products.find_or_fail(product_id)
        cart = self._get_or_create(token)
        unit = unit or product.stock_unit

        existing = next((i for i in cart.items if i.product_id == product_id), None)
        if existing:
            existing.quantity = quantity
            existing.unit = unit
        else:
            cart.items.append(CartItem(product_id=product_id, quantity=quantity, unit=unit))
        self.db.commit()
        return cart.token

    def update_item(self, token: str, product_id: int, quantity, unit: Optional[str] = None) -> None:
        cart = self._live_cart(token)
        if cart is None:
            return
        for item in cart.items:
            if item.product_id == product_id:
                item.quantity = quantity
                if unit is not None:
                    item.unit = unit
                cart.expires_at = self._expiry()
                self.db.commit()
                return

    def remove_item(self, token: str, product_id: int) -> None:
        cart = self._live_cart(token)
        if cart is None:
            return
        for item in list(cart.items):
            if item.product_id == product_id:
                cart.items.remove(item)
        self.db.commit()

    def items(self, token: Optional[str]) -> List[dict]:
        """Stored selection as plain dicts (no pricing, inactive products included)."""
        cart = self._live_cart(token)
        if cart is None:
            return []
        return [{"product_id": i.product_id, "quantity": i.quantity, "unit": i.unit} for i in cart.items]

    def get(self, token: Optional[str], at=None) -> List[CartLine]:
        """Fresh product rows with the cart quantities; inactive products are dropped."""
        cart = self._live_cart(token)
        if cart is None:
            return []
        return [
            CartLine(item.product, item.quantity, item.unit, at)
            for item in cart.items
            if item.product is not None and item.product.status == "active"
        ]

    def totals(self, token: Optional[str], at=None) -> dict:
        lines = self.get(token, at)
        if not lines:
            zero = Decimal("0.00")
            return {"subtotal": zero, "discount": zero, "total": zero, "item_count": 0}
        totals = pricing.cart_totals([(l.product, l.quantity, l.unit) for l in lines], at)
        totals["item_count"] = len(lines)
        return totals

    def require(self, token: Optional[str]) -> List[dict]:
        items = self.items(token)
        if not items:
            raise BusinessError("No products in review. Please select products first.")
        return items

    def clear(self, token: Optional[str], commit: bool = True) -> None:
        if not token:
            return
        cart = self.carts.by_token(token)
        if cart is not None:
            self.db.delete(cart)
            if commit:
                self.db.commit()
