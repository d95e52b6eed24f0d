# backend/utils/pdf.py
import logging
from datetime import datetime
from itertools import groupby
from pathlib import Path
from typing import List, Optional

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from services import pricing

logger = logging.getLogger(__name__)

FONT_DIR = Path("assets/fonts")
FONT_REGULAR_PATH = FONT_DIR / "DejaVuSans.ttf"
FONT_BOLD_PATH = FONT_DIR / "DejaVuSans-Bold.ttf"

# Built-in fonts until the DejaVu files are registered
FONT_REGULAR_NAME = "Helvetica"
FONT_BOLD_NAME = "Helvetica-Bold"

_fonts_inited = False


def _init_fonts():
    """Registers DejaVu fonts (wider glyph coverage) when the font files are present."""
    global _fonts_inited, FONT_REGULAR_NAME, FONT_BOLD_NAME
    if _fonts_inited:
        return
    _fonts_inited = True

    if not FONT_REGULAR_PATH.exists():
        logger.info(f"Font file not found at {FONT_REGULAR_PATH}, using Helvetica")
        return

    pdfmetrics.registerFont(TTFont("DejaVuSans", str(FONT_REGULAR_PATH)))
    FONT_REGULAR_NAME = FONT_BOLD_NAME = "DejaVuSans"
    if FONT_BOLD_PATH.exists():
        pdfmetrics.registerFont(TTFont("DejaVuSans-Bold", str(FONT_BOLD_PATH)))
        FONT_BOLD_NAME = "DejaVuSans-Bold"


class _Page:
    """Canvas wrapper tracking the current line and starting new pages."""

    def __init__(self, out_path: Path, title: str):
        _init_fonts()
        self.c = canvas.Canvas(str(out_path), pagesize=A4)
        self.c.setTitle(title)
        self.width, self.height = A4
        self.y = self.height - 20 * mm

    def draw_text(self, x, text, font=None, size=10, align="left", color=(0, 0, 0)):
        c = self.c
        c.setFillColorRGB(*color)
        c.setFont(font or FONT_REGULAR_NAME, size)
        text_str = str(text) if text is not None else ""
        if align == "right":
            c.drawRightString(x, self.y, text_str)
        elif align == "center":
            c.drawCentredString(x, self.y, text_str)
        else:
            c.drawString(x, self.y, text_str)
        c.setFillColorRGB(0, 0, 0)

    def down(self, amount):
        self.y -= amount
        if self.y < 25 * mm:
            self.c.showPage()
            self.y = self.height - 20 * mm

    def rule(self, width=0.5):
        self.c.setLineWidth(width)
        self.c.line(20 * mm, self.y, 190 * mm, self.y)

    def header_bar(self, columns):
        # Grey band behind the column titles
        self.c.setFillColorRGB(0.95, 0.95, 0.95)
        self.c.rect(20 * mm, self.y - 2 * mm, 170 * mm, 8 * mm, fill=1, stroke=0)
        self.c.setFillColorRGB(0, 0, 0)
        for x, label, align in columns:
            self.draw_text(x, label, font=FONT_BOLD_NAME, size=9, align=align)
        self.down(8 * mm)

    def save(self):
        self.c.showPage()
        self.c.save()


def _heading(page: _Page, title: str, subtitle: Optional[str] = None):
    page.draw_text(105 * mm, title, font=FONT_BOLD_NAME, size=16, align="center")
    page.down(7 * mm)
    page.draw_text(105 * mm, subtitle or datetime.now().strftime("%d %b %Y"), size=10, align="center", color=(0.4, 0.4, 0.4))
    page.down(6 * mm)
    page.rule()
    page.down(10 * mm)


def render_price_list(products: List, out_path: Path, layout: str = "regular", currency: str = "AED") -> None:
    """Price list grouped by category; "catalog" puts each product on a two-line card."""
    page = _Page(out_path, "Price List")
    _heading(page, "Price List")

    def category_name(p):
        return p.category.name if p.category else "Other"

    ordered = sorted(products, key=lambda p: (category_name(p), p.name))
    for category, items in groupby(ordered, key=category_name):
        page.draw_text(20 * mm, category, font=FONT_BOLD_NAME, size=12)
        page.down(8 * mm)

        if layout == "catalog":
            for p in items:
                price = pricing.selling_price(p)
                page.draw_text(22 * mm, p.name, font=FONT_BOLD_NAME, size=10)
                page.draw_text(188 * mm, f"{pricing.format_price(price, currency)} / {p.stock_unit}",
                               font=FONT_BOLD_NAME, size=10, align="right")
                page.down(5 * mm)
                detail = f"Code: {p.item_code}"
                if pricing.has_discount(p):
                    detail += f"   Was {pricing.format_price(p.regular_price, currency)}"
                page.draw_text(22 * mm, detail, size=8, color=(0.4, 0.4, 0.4))
                page.down(3 * mm)
                page.rule(0.1)
                page.down(6 * mm)
        else:
            page.header_bar([
                (22 * mm, "Code", "left"), (50 * mm, "Product", "left"), (130 * mm, "Unit", "left"),
                (160 * mm, "Price", "right"), (188 * mm, "Offer", "right"),
            ])
            for p in items:
                offer = pricing.format_price(pricing.selling_price(p), currency) if pricing.has_discount(p) else ""
                page.draw_text(22 * mm, p.item_code, size=9)
                page.draw_text(50 * mm, str(p.name)[:45], size=9)
                page.draw_text(130 * mm, p.stock_unit, size=9)
                page.draw_text(160 * mm, pricing.format_price(p.regular_price, currency), size=9, align="right")
                page.draw_text(188 * mm, offer, font=FONT_BOLD_NAME, size=9, align="right")
                page.c.setLineWidth(0.1)
                page.c.line(20 * mm, page.y - 2 * mm, 190 * mm, page.y - 2 * mm)
                page.down(6 * mm)
        page.down(4 * mm)

    page.save()


def render_order(lines: List[dict], totals: dict, out_path: Path, currency: str = "AED",
                 order_number: Optional[str] = None, customer: Optional[dict] = None) -> None:
    """Order summary; lines are review/order item dicts with name, quantity, unit, price and subtotal."""
    page = _Page(out_path, order_number or "Order Summary")
    _heading(page, "Order Summary", order_number)

    if customer:
        for label in ("name", "phone", "address"):
            if customer.get(label):
                page.draw_text(20 * mm, f"{label.capitalize()}: {customer[label]}", size=10)
                page.down(5 * mm)
        page.down(5 * mm)

    page.header_bar([
        (22 * mm, "#", "left"), (30 * mm, "Product", "left"), (120 * mm, "Quantity", "right"),
        (155 * mm, "Price", "right"), (188 * mm, "Subtotal", "right"),
    ])
    for idx, line in enumerate(lines, start=1):
        page.draw_text(22 * mm, idx, size=9)
        page.draw_text(30 * mm, str(line["name"])[:45], size=9)
        page.draw_text(120 * mm, f"{pricing.to_decimal(line['quantity']).normalize():f} {line['unit']}", size=9, align="right")
        page.draw_text(155 * mm, pricing.format_price(line["price"], currency), size=9, align="right")
        page.draw_text(188 * mm, pricing.format_price(line["subtotal"], currency), size=9, align="right")
        page.c.setLineWidth(0.1)
        page.c.line(20 * mm, page.y - 2 * mm, 190 * mm, page.y - 2 * mm)
        page.down(6 * mm)

    page.down(4 * mm)
    if pricing.to_decimal(totals.get("discount")) > 0:
        page.draw_text(155 * mm, "You save:", size=10, align="right")
        page.draw_text(188 * mm, pricing.format_price(totals["discount"], currency), size=10, align="right")
        page.down(6 * mm)
    page.draw_text(155 * mm, "TOTAL:", font=FONT_BOLD_NAME, size=12, align="right")
    page.draw_text(188 * mm, pricing.format_price(totals["total"], currency), font=FONT_BOLD_NAME, size=12, align="right")

    page.save()
