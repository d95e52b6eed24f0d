# backend/main.py
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

load_dotenv()

from config import settings
from database import init_db
from utils.errors import AppError

# Router imports
from routes.auth import router as auth_router
from routes.logs import router as logs_router
from routes.categories import router as categories_router
from routes.products import router as products_router
from routes.customers import router as customers_router
from routes.orders import router as orders_router
from routes.price_updates import router as price_updates_router
from routes.dashboard import router as dashboard_router
from routes.address import router as address_router
from routes.whatsapp import router as whatsapp_router
from routes.order_form import router as order_form_router

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# Initialisation
init_db()

app = FastAPI(title="Grocery Catalog API", version="1.0.0")

# Uploaded images and generated PDFs are served as static files
for folder in ("uploads", "pdfs"):
    Path(settings.STORAGE_DIR, folder).mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(Path(settings.STORAGE_DIR, "uploads"))), name="uploads")
app.mount("/pdfs", StaticFiles(directory=str(Path(settings.STORAGE_DIR, "pdfs"))), name="pdfs")

# CORS Configuration
frontend_url = os.getenv("FRONTEND_URL")
origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

if frontend_url:
    origins.append(frontend_url)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =========================
# ERROR HANDLERS
# =========================
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for error in exc.errors():
        # Drop the "body"/"query" prefix from the location
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        errors.setdefault(".".join(loc) or "request", []).append(error.get("msg"))
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": "The given data was invalid.", "errors": errors},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


# Router registration
API_PREFIX = "/api/v1"
app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(logs_router, prefix=API_PREFIX)
app.include_router(categories_router, prefix=API_PREFIX)
app.include_router(products_router, prefix=API_PREFIX)
app.include_router(customers_router, prefix=API_PREFIX)
app.include_router(orders_router, prefix=API_PREFIX)
app.include_router(price_updates_router, prefix=API_PREFIX)
app.include_router(dashboard_router, prefix=API_PREFIX)
app.include_router(address_router, prefix=API_PREFIX)
app.include_router(whatsapp_router, prefix=API_PREFIX)

# Public order form
app.include_router(order_form_router)


@app.get("/")
def read_root():
    return {"message": "Grocery Catalog API is running"}
