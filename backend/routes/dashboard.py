# backend/routes/dashboard.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.common import Envelope, ok
from schemas.dashboard import DashboardOut
from services.dashboard import DashboardService
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("", response_model=Envelope[DashboardOut])
def dashboard(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok(DashboardService(db).statistics())
