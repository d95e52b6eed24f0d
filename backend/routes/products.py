# backend/routes/products.py
from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from repositories.filters import ProductFilter
from schemas.common import Envelope, Page, ok, paginated
from schemas.product import ProductOut, VariationCreate, VariationOut
from services.products import ProductService
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/products", tags=["Products"])

Status = Literal["active", "inactive"]
ProductType = Literal["daily", "standard"]
DiscountType = Literal["none", "percentage", "fixed"]
StockStatus = Literal["in_stock", "low_stock", "out_of_stock"]
SortField = Literal["id", "name", "item_code", "regular_price", "stock_quantity", "created_at"]


# =========================
# PRODUCT LIST
# =========================
@router.get("", response_model=Page[ProductOut])
def list_products(
    search: Optional[str] = Query(None),
    category_id: Optional[List[int]] = Query(None),
    status: Optional[Status] = Query(None),
    product_type: Optional[ProductType] = Query(None),
    stock_status: Optional[StockStatus] = Query(None),
    has_discount: Optional[bool] = Query(None),
    sort_by: SortField = Query("name"),
    order: Literal["asc", "desc"] = Query("asc"),
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    f = ProductFilter(
        search=search, category_id=category_id, status=status, product_type=product_type,
        stock_status=stock_status, has_discount=has_discount,
    )
    items, total = ProductService(db).paginate(f, page, per_page, sort_by, order)
    return paginated(items, total, page, per_page)


# =========================
# SINGLE PRODUCT
# =========================
@router.get("/{product_id}", response_model=Envelope[ProductOut])
def get_product(product_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok(ProductService(db).show(product_id))


# =========================
# CREATE PRODUCT (multipart form + optional image)
# =========================
@router.post("", response_model=Envelope[ProductOut], status_code=201)
def create_product(
    name: str = Form(..., min_length=1, max_length=255),
    item_code: str = Form(..., min_length=1, max_length=50),
    category_id: Optional[int] = Form(None),
    regular_price: Decimal = Form(..., ge=0),
    stock_quantity: Decimal = Form(Decimal("0"), ge=0),
    stock_unit: str = Form("kg"),
    min_order_quantity: Optional[Decimal] = Form(None, ge=0),
    max_order_quantity: Optional[Decimal] = Form(None, ge=0),
    product_type: ProductType = Form("standard"),
    status: Status = Form("active"),
    discount_type: Optional[DiscountType] = Form(None),
    discount_value: Optional[Decimal] = Form(None, ge=0),
    discount_start_date: Optional[date] = Form(None),
    discount_end_date: Optional[date] = Form(None),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    data = {
        "name": name, "item_code": item_code, "category_id": category_id,
        "regular_price": regular_price, "stock_quantity": stock_quantity, "stock_unit": stock_unit,
        "min_order_quantity": min_order_quantity, "max_order_quantity": max_order_quantity,
        "product_type": product_type, "status": status,
        "discount_type": discount_type, "discount_value": discount_value,
        "discount_start_date": discount_start_date, "discount_end_date": discount_end_date,
    }
    product = ProductService(db).create(data, current_user.id, image)
    return ok(product, "Product created successfully")


# =========================
# PARTIAL UPDATE (PATCH - Form + File)
# =========================
@router.patch("/{product_id}", response_model=Envelope[ProductOut])
def update_product(
    product_id: int,
    name: Optional[str] = Form(None, min_length=1, max_length=255),
    item_code: Optional[str] = Form(None, min_length=1, max_length=50),
    category_id: Optional[int] = Form(None),
    regular_price: Optional[Decimal] = Form(None, ge=0),
    stock_quantity: Optional[Decimal] = Form(None, ge=0),
    stock_unit: Optional[str] = Form(None),
    min_order_quantity: Optional[Decimal] = Form(None, ge=0),
    max_order_quantity: Optional[Decimal] = Form(None, ge=0),
    product_type: Optional[ProductType] = Form(None),
    status: Optional[Status] = Form(None),
    discount_type: Optional[DiscountType] = Form(None),
    discount_value: Optional[Decimal] = Form(None, ge=0),
    discount_start_date: Optional[date] = Form(None),
    discount_end_date: Optional[date] = Form(None),
    remove_image: bool = Form(False),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    fields = {
        "name": name, "item_code": item_code, "category_id": category_id,
        "regular_price": regular_price, "stock_quantity": stock_quantity, "stock_unit": stock_unit,
        "min_order_quantity": min_order_quantity, "max_order_quantity": max_order_quantity,
        "product_type": product_type, "status": status,
        "discount_type": discount_type, "discount_value": discount_value,
        "discount_start_date": discount_start_date, "discount_end_date": discount_end_date,
    }
    data = {k: v for k, v in fields.items() if v is not None}
    product = ProductService(db).update(product_id, data, current_user.id, image, remove_image)
    return ok(product, "Product updated successfully")


@router.delete("/{product_id}", response_model=Envelope[None])
def delete_product(product_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    ProductService(db).delete(product_id, current_user.id)
    return ok(message="Product deleted successfully")


@router.post("/{product_id}/toggle-status", response_model=Envelope[ProductOut])
def toggle_product_status(
    product_id: int, request: Request,
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    product = ProductService(db).toggle_status(product_id, current_user.id)
    write_log(db, user_id=current_user.id, action="PRODUCT_TOGGLE", resource="products",
              ip=client_ip(request), meta={"id": product.id, "status": product.status})
    return ok(product, f"Product {'activated' if product.status == 'active' else 'deactivated'} successfully")


# =========================
# VARIATIONS
# =========================
@router.get("/{product_id}/variations", response_model=Envelope[List[VariationOut]])
def list_variations(product_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok(ProductService(db).variations(product_id))


@router.post("/{product_id}/variations", response_model=Envelope[VariationOut], status_code=201)
def add_variation(
    product_id: int, payload: VariationCreate,
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    return ok(ProductService(db).add_variation(product_id, payload.model_dump()), "Variation added successfully")
