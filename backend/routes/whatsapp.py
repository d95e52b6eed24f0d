# backend/routes/whatsapp.py
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, File, UploadFile
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.common import Envelope, ok
from schemas.whatsapp import (
    GeneratePriceListRequest, JobSummary, ProductUpdateRequest, RetryJobsRequest,
    SendMessageRequest, TestMessageRequest, ValidateNumberRequest,
)
from services.notifications import NotificationService, run_queued_jobs
from services.pdf import PdfService
from utils.tokenJWT import get_current_user
from utils.whatsapp_client import WhatsAppClient, get_whatsapp_client

router = APIRouter(prefix="/whatsapp", tags=["WhatsApp"])
logger = logging.getLogger(__name__)


def _summary_message(result: dict) -> str:
    if "queued" in result:
        message = f"{result['queued']} message(s) queued for sending"
        if result["invalid"]:
            message += f", {result['invalid']} skipped (invalid number)"
        return message
    return f"Messages sent: {result['successful']} successful, {result['failed']} failed"


def _queue(background_tasks: BackgroundTasks, client: WhatsAppClient, result: dict) -> None:
    if result.get("job_ids"):
        background_tasks.add_task(run_queued_jobs, result["job_ids"], client)


@router.post("/generate-price-list")
def generate_price_list(
    payload: GeneratePriceListRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = PdfService(db).generate_price_list(payload.product_ids, payload.pdf_layout)
    return ok(result, "Price list generated successfully")


# Custom PDF to attach instead of a generated price list
@router.post("/upload-pdf")
def upload_pdf(
    custom_pdf: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok({"pdf_url": PdfService(db).store_custom_pdf(custom_pdf)}, "PDF uploaded successfully")


@router.post("/send-message")
def send_message(
    payload: SendMessageRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: WhatsAppClient = Depends(get_whatsapp_client),
):
    result = NotificationService(db, client).send_to_customers(payload.model_dump(), current_user.id)
    _queue(background_tasks, client, result)
    return ok(result, _summary_message(result))


@router.post("/send-product-update")
def send_product_update(
    payload: ProductUpdateRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: WhatsAppClient = Depends(get_whatsapp_client),
):
    result = NotificationService(db, client).send_product_update(payload.model_dump(), current_user.id)
    _queue(background_tasks, client, result)
    return ok(result, _summary_message(result))


@router.post("/test-message/{customer_id}")
def send_test_message(
    customer_id: int,
    payload: TestMessageRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: WhatsAppClient = Depends(get_whatsapp_client),
):
    result = NotificationService(db, client).send_test_message(customer_id, payload.message)
    return ok(result, "Test message sent successfully")


@router.post("/validate-number")
def validate_number(payload: ValidateNumberRequest, current_user: User = Depends(get_current_user)):
    result = NotificationService.validate_number(payload.whatsapp_number)
    return ok(result, "Valid WhatsApp number" if result["valid"] else "Invalid WhatsApp number format")


# Queue monitoring
@router.get("/jobs", response_model=Envelope[JobSummary])
def job_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: WhatsAppClient = Depends(get_whatsapp_client),
):
    return ok(NotificationService(db, client).job_summary())


@router.post("/jobs/retry-failed")
def retry_failed_jobs(
    payload: RetryJobsRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    client: WhatsAppClient = Depends(get_whatsapp_client),
):
    job_ids = NotificationService(db, client).retry_failed(payload.job_ids)
    _queue(background_tasks, client, {"job_ids": job_ids})
    logger.info(f"User {current_user.id} re-queued {len(job_ids)} WhatsApp job(s)")
    return ok({"requeued": len(job_ids), "job_ids": job_ids}, f"{len(job_ids)} failed job(s) re-queued")


@router.post("/jobs/process")
def process_pending_jobs(
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    client: WhatsAppClient = Depends(get_whatsapp_client),
):
    background_tasks.add_task(run_queued_jobs, None, client)
    return ok(None, "Pending WhatsApp jobs scheduled for processing")
