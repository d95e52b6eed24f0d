# backend/services/pricing.py
"""Selling price, discount and per-quantity price calculation.

All amounts are Decimal and rounded half-up to 2 decimals. The product is
expected to have its ``discounts`` relationship loaded (or loadable).
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple

from services.units import convert_quantity

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def apply_discount(regular_price, discount_type: Optional[str], discount_value) -> Decimal:
    """Regular price minus a percentage or fixed discount, never below zero."""
    price = to_decimal(regular_price)
    value = to_decimal(discount_value)

    if discount_type == "percentage":
        price = price - price * value / Decimal("100")
    elif discount_type == "fixed":
        price = price - value

    return max(ZERO, to_money(price))


def _as_date(at) -> date:
    if at is None:
        return datetime.now().date()
    if isinstance(at, datetime):
        return at.date()
    return at


def discount_is_active(discount, at=None) -> bool:
    """Status active and `at` inside [start_date, end_date] (whole days, open bounds allowed)."""
    if discount.status != "active":
        return False
    day = _as_date(at)
    if discount.start_date and day < discount.start_date:
        return False
    if discount.end_date and day > discount.end_date:
        return False
    return True


def active_discount(product, at=None):
    # Several qualifying rows is a data problem; the most recently created one wins
    candidates = [d for d in (product.discounts or []) if discount_is_active(d, at)]
    if not candidates:
        return None
    return max(candidates, key=lambda d: d.id or 0)


def has_discount(product, at=None) -> bool:
    return active_discount(product, at) is not None


def selling_price(product, at=None) -> Decimal:
    discount = active_discount(product, at)
    if discount is None:
        return to_money(product.regular_price)
    return apply_discount(product.regular_price, discount.discount_type, discount.discount_value)


def discount_amount(product, at=None) -> Decimal:
    """Per stock unit amount taken off the regular price."""
    return to_money(product.regular_price) - selling_price(product, at)


def discount_percentage(product, at=None) -> Decimal:
    discount = active_discount(product, at)
    regular = to_decimal(product.regular_price)
    if discount is None or regular == 0:
        return ZERO
    if discount.discount_type == "percentage":
        return to_money(discount.discount_value)
    return to_money(discount_amount(product, at) / regular * 100)


def quantity_in_stock_unit(product, quantity, unit: Optional[str] = None) -> Decimal:
    if not unit or unit.strip().lower() == (product.stock_unit or "").strip().lower():
        return to_decimal(quantity)
    return convert_quantity(quantity, unit, product.stock_unit, product.name)


def price_for_quantity(product, quantity, unit: Optional[str] = None, at=None) -> Decimal:
    """Price of `quantity` expressed in `unit` (defaults to the product's stock unit)."""
    base_quantity = quantity_in_stock_unit(product, quantity, unit)
    return to_money(selling_price(product, at) * base_quantity)


def cart_totals(lines: Iterable[Tuple[object, object, Optional[str]]], at=None) -> dict:
    """Totals for (product, quantity, unit) lines; discount is reported separately."""
    subtotal = ZERO
    discount = ZERO
    for product, quantity, unit in lines:
        base_quantity = quantity_in_stock_unit(product, quantity, unit)
        line_total = to_money(selling_price(product, at) * base_quantity)
        subtotal += line_total
        discount += to_money(to_decimal(product.regular_price) * base_quantity) - line_total

    return {"subtotal": subtotal, "discount": discount, "total": subtotal}


def price_breakdown(product, quantity, unit: Optional[str] = None, at=None) -> dict:
    unit = unit or product.stock_unit
    base_quantity = quantity_in_stock_unit(product, quantity, unit)
    regular = to_money(product.regular_price)
    effective = selling_price(product, at)
    discount = active_discount(product, at)

    regular_subtotal = to_money(regular * base_quantity)
    subtotal = to_money(effective * base_quantity)

    return {
        "regular_price": regular,
        "effective_price": effective,
        "quantity": to_decimal(quantity),
        "unit": unit,
        "has_discount": discount is not None,
        "discount_type": discount.discount_type if discount else None,
        "discount_value": to_money(discount.discount_value) if discount else None,
        "discount_percentage": discount_percentage(product, at),
        "discount_amount": regular_subtotal - subtotal,
        "regular_subtotal": regular_subtotal,
        "subtotal": subtotal,
    }


def format_price(amount, currency: str = "AED") -> str:
    return f"{currency} {to_money(amount):,.2f}"
