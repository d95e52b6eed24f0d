import pytest

from utils import phone


@pytest.mark.parametrize("raw, expected", [
    ("050 123 4567", "+971501234567"),
    ("0501234567", "+971501234567"),
    ("971501234567", "+971501234567"),
    ("501234567", "+971501234567"),
    ("+91 98765 43210", "+919876543210"),
    ("(050) 123-4567", "+971501234567"),
])
def test_normalize(raw, expected):
    assert phone.normalize(raw) == expected


def test_normalize_blank():
    assert phone.normalize("") is None
    assert phone.normalize("   ") is None
    assert phone.normalize(None) is None


def test_normalize_with_other_default_country():
    assert phone.normalize("09876543210", "+91") == "+919876543210"


def test_format_for_whatsapp():
    assert phone.format_for_whatsapp("0501234567") == "whatsapp:+971501234567"
    assert phone.format_for_whatsapp("whatsapp:+971501234567") == "whatsapp:+971501234567"
    assert phone.format_for_whatsapp(None) is None


@pytest.mark.parametrize("number, valid", [
    ("+971501234567", True),
    ("whatsapp:+971501234567", True),
    ("+971 50 123 4567", True),
    ("0501234567", False),
    ("+0123456", False),
    ("+971abc", False),
    ("", False),
])
def test_validate(number, valid):
    assert phone.validate(number) is valid


@pytest.mark.parametrize("number, accepted", [
    ("501234567", True),
    ("+971501234567", True),
    ("971501234567", True),
    ("9876543210", True),
    ("+91 98765 43210", True),
    ("0501234567", False),
    ("5012345", False),
    ("50123456a", False),
    ("", False),
])
def test_order_form_number(number, accepted):
    assert phone.is_order_form_number(number) is accepted


def test_extract_country_code():
    assert phone.extract_country_code("+971501234567") == "+971"
    assert phone.extract_country_code("501234567") is None
