# backend/utils/phone.py
"""WhatsApp phone number helpers.

Numbers are stored in E.164 form (+971501234567) and sent to the messaging
API with a ``whatsapp:`` prefix.
"""
import re
from typing import Optional

from config import settings

_FORMATTING = re.compile(r"[\s\-()]")
_E164 = re.compile(r"^\+[1-9]\d{1,14}$")
# Order form accepts Indian mobiles and UAE numbers only
_ORDER_FORM_NUMBER = re.compile(r"^(\+91|91)?[6-9]\d{9}$|^(\+971|971)?\d{9}$")
_ALLOWED_CHARS = re.compile(r"^[0-9+\-\s]+$")


def normalize(number: Optional[str], default_country_code: Optional[str] = None) -> Optional[str]:
    if not number or not number.strip():
        return None

    country_code = default_country_code or settings.PHONE_DEFAULT_COUNTRY_CODE
    cleaned = _FORMATTING.sub("", number.strip())

    if cleaned.startswith("+"):
        return cleaned
    if cleaned.startswith(country_code.lstrip("+")):
        return "+" + cleaned
    if cleaned.startswith("0"):
        return country_code + cleaned[1:]
    return country_code + cleaned


def format_for_whatsapp(number: Optional[str]) -> Optional[str]:
    if not number:
        return None
    normalized = normalize(number.replace("whatsapp:", ""))
    if not normalized:
        return None
    return f"whatsapp:{normalized}"


def validate(number: Optional[str]) -> bool:
    """True for an E.164 number (optionally prefixed with ``whatsapp:``)."""
    if not number:
        return False
    cleaned = _FORMATTING.sub("", number.replace("whatsapp:", ""))
    return bool(_E164.match(cleaned))


def is_order_form_number(number: Optional[str]) -> bool:
    if not number or not _ALLOWED_CHARS.match(number):
        return False
    return bool(_ORDER_FORM_NUMBER.match(_FORMATTING.sub("", number)))


def extract_country_code(number: str) -> Optional[str]:
    match = re.match(r"^\+(\d{1,3})", number)
    return f"+{match.group(1)}" if match else None
