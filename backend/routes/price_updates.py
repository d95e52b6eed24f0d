# backend/routes/price_updates.py
from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.common import Envelope, ok
from schemas.price_update import BulkUpdateRequest, PriceUpdateOut
from schemas.product import ProductOut
from services.price_updates import PriceUpdateService
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/price-updates", tags=["Price updates"])


# Active products for the bulk price editor
@router.get("/products", response_model=Envelope[List[ProductOut]])
def products_for_update(
    search: Optional[str] = Query(None),
    category_id: Optional[int] = Query(None),
    product_type: Optional[Literal["daily", "standard"]] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok(PriceUpdateService(db).products_for_update(search, category_id, product_type))


@router.post("/bulk-update")
def bulk_update(
    payload: BulkUpdateRequest,
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user),
):
    """Apply price/stock/discount edits; failing rows are listed in data.errors."""
    result = PriceUpdateService(db).bulk_update([u.model_dump() for u in payload.updates], current_user.id)
    message = f"{result['updated']} product(s) updated"
    if result["errors"]:
        message += f", {len(result['errors'])} failed"
    return ok(result, message)


@router.get("/product/{product_id}/history", response_model=Envelope[List[PriceUpdateOut]])
def product_history(
    product_id: int,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok(PriceUpdateService(db).history(product_id, limit))


@router.get("/by-date-range", response_model=Envelope[List[PriceUpdateOut]])
def by_date_range(
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok(PriceUpdateService(db).by_date_range(start_date, end_date))


@router.get("/recent", response_model=Envelope[List[PriceUpdateOut]])
def recent_updates(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok(PriceUpdateService(db).recent(limit))
