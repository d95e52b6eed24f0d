# backend/services/pdf.py
import logging
import re
import secrets
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from fastapi import UploadFile
from sqlalchemy.orm import Session

from config import settings
from models.product import Product
from repositories.filters import ProductFilter
from repositories.product import ProductRepository
from utils import pdf
from utils.errors import BusinessError

logger = logging.getLogger(__name__)

PDF_DIRECTORY = "pdfs"
MAX_PDF_SIZE = 10 * 1024 * 1024
LAYOUTS = {"regular", "catalog"}


def pdf_root() -> Path:
    root = Path(settings.STORAGE_DIR) / PDF_DIRECTORY
    root.mkdir(parents=True, exist_ok=True)
    return root


def pdf_url(filename: str) -> str:
    return f"{settings.APP_URL.rstrip('/')}/{PDF_DIRECTORY}/{filename}"


def sanitize_filename(original: Optional[str]) -> str:
    name = re.sub(r"[/\\\0\r\n]", "", original or "").strip()
    name = re.sub(r"\s+", "-", name)
    name = re.sub(r"[^A-Za-z0-9_.\-]", "", name)
    if not name:
        name = "uploaded-pdf"
    if "." not in name:
        name += ".pdf"
    if len(name) > 200:
        stem, ext = name.rsplit(".", 1)
        name = f"{stem[:199 - len(ext)]}.{ext}"
    return name


def _stamped(filename: str) -> str:
    return f"{datetime.now():%Y-%m-%d_%H-%M-%S}_{secrets.token_hex(4)}_{filename}"


class PdfService:
    def __init__(self, db: Session):
        self.db = db
        self.products = ProductRepository(db)

    def _products_for(self, product_ids: List[int]) -> List[Product]:
        if product_ids:
            products = [p for p in self.products.find_many(product_ids) if p.status == "active"]
        else:
            products = self.products.filtered(ProductFilter(status="active")).all()
        if not products:
            raise BusinessError("No active products to include in the price list")
        return products

    def generate_price_list(self, product_ids: Optional[List[int]] = None, layout: str = "regular") -> dict:
        """Render a price list PDF; empty product_ids means every active product."""
        if layout not in LAYOUTS:
            raise BusinessError("Invalid PDF layout", {"pdf_layout": ["Must be regular or catalog"]}, status_code=422)

        products = self._products_for(product_ids or [])
        filename = _stamped(f"price-list-{layout}.pdf")
        path = pdf_root() / filename
        pdf.render_price_list(products, path, layout, settings.CURRENCY)

        logger.info(f"Price list PDF generated at {path} ({layout}, {len(products)} products)")
        return {"pdf_path": f"{PDF_DIRECTORY}/{filename}", "pdf_url": pdf_url(filename)}

    def order_pdf(self, lines: List[dict], totals: dict, order_number: Optional[str] = None,
                  customer: Optional[dict] = None) -> Path:
        filename = _stamped(f"{order_number or 'order-review'}.pdf")
        path = pdf_root() / filename
        pdf.render_order(lines, totals, path, settings.CURRENCY, order_number, customer)
        return path

    def store_custom_pdf(self, upload: UploadFile) -> str:
        """Validate and store an uploaded PDF; returns its public URL."""
        content = upload.file.read()
        upload.file.close()

        if len(content) > MAX_PDF_SIZE:
            raise BusinessError("PDF file size exceeds maximum allowed size of 10MB",
                                {"custom_pdf": ["The PDF file must not exceed 10MB"]}, status_code=422)
        if upload.content_type != "application/pdf" or not (upload.filename or "").lower().endswith(".pdf"):
            raise BusinessError("Invalid file type. Only PDF files are allowed.",
                                {"custom_pdf": ["Only PDF files are allowed"]}, status_code=422)
        if not content.startswith(b"%PDF"):
            raise BusinessError("Uploaded file is not a valid PDF",
                                {"custom_pdf": ["Only PDF files are allowed"]}, status_code=422)

        filename = _stamped(sanitize_filename(upload.filename))
        (pdf_root() / filename).write_bytes(content)
        logger.info(f"Custom PDF stored as {filename} ({len(content)} bytes)")
        return pdf_url(filename)

    def cleanup(self, days: int = 7) -> int:
        cutoff = time.time() - days * 86400
        deleted = 0
        for path in pdf_root().glob("*.pdf"):
            if path.stat().st_mtime < cutoff:
                path.unlink()
                deleted += 1
        if deleted:
            logger.info(f"PDF cleanup removed {deleted} file(s) older than {days} days")
        return deleted
