# backend/routes/categories.py
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from repositories.filters import CategoryFilter, ProductFilter
from schemas.category import CategoryOut, CategoryReorder, CategoryTree
from schemas.common import Envelope, Page, ok, paginated
from schemas.product import ProductOut
from services.categories import CategoryService
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/categories", tags=["Categories"])

Status = Literal["active", "inactive"]


# =========================
# LIST / SEARCH / TREE
# =========================
@router.get("", response_model=Page[CategoryOut])
def list_categories(
    search: Optional[str] = Query(None),
    status: Optional[Status] = Query(None),
    parent_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = CategoryService(db).paginate(CategoryFilter(search, status, parent_id), page, per_page)
    return paginated(items, total, page, per_page)


@router.get("/search", response_model=Envelope[List[CategoryOut]])
def search_categories(
    q: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok(CategoryService(db).search(q, limit))


@router.get("/tree", response_model=Envelope[List[CategoryTree]])
def category_tree(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok(CategoryService(db).tree())


@router.post("/reorder", response_model=Envelope[None])
def reorder_categories(
    payload: CategoryReorder,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    CategoryService(db).reorder([c.model_dump() for c in payload.categories])
    write_log(db, user_id=current_user.id, action="CATEGORY_REORDER", resource="categories",
              ip=client_ip(request), meta={"count": len(payload.categories)})
    return ok(message="Categories reordered successfully")


# =========================
# SINGLE CATEGORY
# =========================
@router.get("/{category_id}", response_model=Envelope[CategoryOut])
def get_category(category_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok(CategoryService(db).show(category_id))


@router.get("/{category_id}/products", response_model=Page[ProductOut])
def category_products(
    category_id: int,
    search: Optional[str] = Query(None),
    status: Optional[Status] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    f = ProductFilter(search=search, status=status)
    items, total = CategoryService(db).products(category_id, f, page, per_page)
    return paginated(items, total, page, per_page)


@router.post("", response_model=Envelope[CategoryOut], status_code=201)
def create_category(
    request: Request,
    name: str = Form(..., min_length=1, max_length=100),
    description: Optional[str] = Form(None),
    parent_id: Optional[int] = Form(None),
    status: Status = Form("active"),
    sort_order: int = Form(0, ge=0),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    data = {
        "name": name, "description": description, "parent_id": parent_id,
        "status": status, "sort_order": sort_order,
    }
    category = CategoryService(db).create(data, image)
    write_log(db, user_id=current_user.id, action="CATEGORY_CREATE", resource="categories",
              ip=client_ip(request), meta={"id": category.id, "name": category.name})
    return ok(category, "Category created successfully")


@router.patch("/{category_id}", response_model=Envelope[CategoryOut])
def update_category(
    category_id: int,
    request: Request,
    name: Optional[str] = Form(None, min_length=1, max_length=100),
    description: Optional[str] = Form(None),
    parent_id: Optional[int] = Form(None),
    status: Optional[Status] = Form(None),
    sort_order: Optional[int] = Form(None, ge=0),
    remove_image: bool = Form(False),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    fields = {
        "name": name, "description": description, "parent_id": parent_id,
        "status": status, "sort_order": sort_order,
    }
    data = {k: v for k, v in fields.items() if v is not None}
    category = CategoryService(db).update(category_id, data, image, remove_image)
    write_log(db, user_id=current_user.id, action="CATEGORY_UPDATE", resource="categories",
              ip=client_ip(request), meta={"id": category.id, "fields": sorted(data.keys())})
    return ok(category, "Category updated successfully")


@router.delete("/{category_id}", response_model=Envelope[None])
def delete_category(
    category_id: int, request: Request,
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    CategoryService(db).delete(category_id)
    write_log(db, user_id=current_user.id, action="CATEGORY_DELETE", resource="categories",
              ip=client_ip(request), meta={"id": category_id})
    return ok(message="Category deleted successfully")


@router.post("/{category_id}/toggle-status", response_model=Envelope[CategoryOut])
def toggle_category_status(
    category_id: int, request: Request,
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    category = CategoryService(db).toggle_status(category_id)
    write_log(db, user_id=current_user.id, action="CATEGORY_TOGGLE", resource="categories",
              ip=client_ip(request), meta={"id": category.id, "status": category.status})
    return ok(category, f"Category {'activated' if category.status == 'active' else 'deactivated'} successfully")
