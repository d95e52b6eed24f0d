# backend/services/units.py
"""Unit families and conversion between units of the same family.

Every family has a base unit and the table stores the size of each unit in
base units (1 gram = 0.001 kg, 1 dozen = 12 pieces). Converting between
families is refused instead of approximated.
"""
from decimal import Decimal
from typing import Optional

from utils.errors import BusinessError


UNIT_FAMILIES = {
    "weight": {
        "base": "kg",
        "sizes": {"kg": Decimal("1"), "gram": Decimal("0.001")},
    },
    "volume": {
        "base": "liter",
        "sizes": {"liter": Decimal("1"), "ml": Decimal("0.001")},
    },
    "count": {
        "base": "piece",
        "sizes": {"piece": Decimal("1"), "pack": Decimal("1"), "dozen": Decimal("12")},
    },
}

# Spellings seen in product data and form submissions
UNIT_ALIASES = {
    "kg": "kg", "kgs": "kg", "kilo": "kg", "kilogram": "kg", "kilograms": "kg",
    "g": "gram", "gm": "gram", "gms": "gram", "gram": "gram", "grams": "gram",
    "l": "liter", "ltr": "liter", "liter": "liter", "liters": "liter", "litre": "liter", "litres": "liter",
    "ml": "ml", "milliliter": "ml", "milliliters": "ml",
    "piece": "piece", "pieces": "piece", "pc": "piece", "pcs": "piece", "unit": "piece", "units": "piece",
    "pack": "pack", "packs": "pack", "packet": "pack", "packets": "pack",
    "dozen": "dozen", "dz": "dozen",
}


class UnitConversionError(BusinessError):
    status_code = 422


def normalize_unit(unit: Optional[str]) -> Optional[str]:
    if not unit:
        return None
    return UNIT_ALIASES.get(unit.strip().lower())


def unit_family(unit: Optional[str]) -> Optional[str]:
    canonical = normalize_unit(unit)
    for family, data in UNIT_FAMILIES.items():
        if canonical in data["sizes"]:
            return family
    return None


def is_known_unit(unit: Optional[str]) -> bool:
    return unit_family(unit) is not None


def convert_quantity(quantity, from_unit: str, to_unit: str, product_name: str = "") -> Decimal:
    """Express `quantity` given in `from_unit` in `to_unit` (500 gram -> 0.5 kg)."""
    family = unit_family(from_unit)
    if family is None or family != unit_family(to_unit):
        label = f" for product {product_name}" if product_name else ""
        raise UnitConversionError(
            f"Cannot convert unit {from_unit} to {to_unit}{label}",
            {"unit": [f"{from_unit} is not compatible with {to_unit}"]},
        )

    sizes = UNIT_FAMILIES[family]["sizes"]
    quantity = Decimal(str(quantity))
    return quantity * sizes[normalize_unit(from_unit)] / sizes[normalize_unit(to_unit)]
