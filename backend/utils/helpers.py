# backend/utils/helpers.py
from typing import Optional


def clean_str(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def normalize_input(data: dict, keep_blank: tuple = ()) -> dict:
    """Trim every string value; blank strings become None unless listed in keep_blank."""
    result = {}
    for key, value in data.items():
        if isinstance(value, str):
            value = value.strip()
            if not value and key not in keep_blank:
                value = None
        result[key] = value
    return result


def norm_code(code: Optional[str]) -> Optional[str]:
    if code is None:
        return None
    c = code.strip().upper()
    return c if c else None


def toggle_status(obj, field: str = "status"):
    """Flip an active/inactive string status, or a boolean flag."""
    current = getattr(obj, field)
    if isinstance(current, bool):
        setattr(obj, field, not current)
    else:
        setattr(obj, field, "inactive" if current == "active" else "active")
    return getattr(obj, field)
