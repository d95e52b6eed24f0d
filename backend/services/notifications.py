# backend/services/notifications.py
"""WhatsApp price-list notifications.

Sends are either queued as ``WhatsAppJob`` rows (the default) and handed to
``process_jobs``, or performed inline with a per-recipient summary. One
failing recipient never aborts the batch.
"""
import logging
import time
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

import database
from config import settings
from models.customer import Customer
from models.product import Product
from models.whatsapp_job import JobStatus, WhatsAppJob
from repositories.customer import CustomerRepository
from repositories.whatsapp_job import WhatsAppJobRepository
from services.pdf import PdfService
from utils import phone
from utils.audit import write_log
from utils.errors import BusinessError
from utils.whatsapp_client import WhatsAppClient, WhatsAppError

logger = logging.getLogger(__name__)

TEST_MESSAGE = "Hello {{name}}, this is a test message from the grocery price list service."


def personalize(template: Optional[str], customer: Customer) -> Optional[str]:
    if template is None:
        return None
    return template.replace("{{name}}", customer.name or "")


def check_template_usage(template_id: Optional[str], message: Optional[str]) -> None:
    if template_id and message:
        raise BusinessError(
            "Cannot use both template_id and message. Provide either a template or a plain text message.",
            {
                "template_id": ["Cannot use template with plain text message"],
                "message": ["Cannot use plain text message with template"],
            },
            status_code=422,
        )


def send_job(db: Session, client: WhatsAppClient, job: WhatsAppJob) -> bool:
    """Make one delivery attempt; the job stays pending until it is sent or out of attempts."""
    customer = job.customer
    to = phone.format_for_whatsapp(customer.whatsapp_number) if customer else None

    job.attempts += 1
    try:
        if to is None:
            raise WhatsAppError(None, "Customer no longer exists")
        result = client.send(to, body=job.message, media_url=job.media_url,
                             template_id=job.template_id, content_variables=job.content_variables)
        job.status = JobStatus.SENT.value
        job.message_sid = result.get("sid")
        job.last_error = None
        logger.info(f"WhatsApp job {job.id} sent to customer {job.customer_id} ({job.message_sid})")
    except WhatsAppError as e:
        job.last_error = e.message
        logger.error(f"WhatsApp job {job.id} attempt {job.attempts}/{job.max_attempts} failed: {e.message}")
        if job.attempts >= job.max_attempts:
            job.status = JobStatus.FAILED.value
            logger.error(f"WhatsApp job {job.id} permanently failed for customer {job.customer_id}")
    db.commit()

    return job.status == JobStatus.SENT.value


def process_jobs(db: Session, client: WhatsAppClient, job_ids: Optional[Sequence[int]] = None) -> dict:
    """One pass over pending jobs (optionally only the given ids); returns the outcome counts."""
    jobs = WhatsAppJobRepository(db).pending(job_ids)
    summary = {"processed": len(jobs), "sent": 0, "failed": 0, "pending": 0}
    for job in jobs:
        send_job(db, client, job)
        summary[job.status] += 1
    return summary


def run_queued_jobs(job_ids: Optional[List[int]], client: WhatsAppClient) -> None:
    """Background task entry point with its own session.

    Jobs that fail are retried on later passes, WHATSAPP_RETRY_DELAY_SECONDS
    apart, until each one is sent or has used its attempts.
    """
    db = database.SessionLocal()
    try:
        while True:
            summary = process_jobs(db, client, job_ids)
            logger.info(f"WhatsApp queue pass finished: {summary}")
            if not summary["pending"]:
                break
            time.sleep(settings.WHATSAPP_RETRY_DELAY_SECONDS)
    finally:
        db.close()


class NotificationService:
    def __init__(self, db: Session, client: WhatsAppClient):
        self.db = db
        self.client = client
        self.customers = CustomerRepository(db)
        self.jobs = WhatsAppJobRepository(db)
        self.pdfs = PdfService(db)

    def generate_price_list(self, product_ids: Optional[List[int]] = None, layout: str = "regular") -> dict:
        return self.pdfs.generate_price_list(product_ids, layout)

    def _pdf_url(self, include_pdf: bool, custom_pdf_url: Optional[str],
                 product_ids: Optional[List[int]], layout: str) -> Optional[str]:
        if not include_pdf:
            return None
        if custom_pdf_url:
            return custom_pdf_url
        if not product_ids:
            raise BusinessError(
                "Select at least one product for the price list PDF",
                {"product_ids": ["Select at least one product, upload a custom PDF or turn off include_pdf"]},
                status_code=422,
            )
        return self.pdfs.generate_price_list(product_ids, layout)["pdf_url"]

    def _recipients(self, customer_ids: Optional[List[int]], send_to_all: bool) -> List[Customer]:
        if send_to_all:
            return self.customers.active()
        if not customer_ids:
            raise BusinessError("No customers selected", {"customer_ids": ["Select at least one customer"]}, status_code=422)
        return self.customers.by_ids(customer_ids)

    def send_to_customers(self, request: dict, user_id: Optional[int] = None) -> dict:
        message = request.get("message")
        template_id = request.get("template_id")
        check_template_usage(template_id, message)

        pdf_url = self._pdf_url(
            request.get("include_pdf", True), request.get("custom_pdf_url"),
            request.get("product_ids"), request.get("pdf_layout") or "regular",
        )
        customers = self._recipients(request.get("customer_ids"), request.get("send_to_all", False))
        return self._dispatch(customers, message, template_id, request.get("content_variables"),
                              pdf_url, request.get("async_send", True), user_id, "WHATSAPP_SEND")

    def send_product_update(self, request: dict, user_id: Optional[int] = None) -> dict:
        message = request.get("message")
        template_id = request.get("template_id")
        check_template_usage(template_id, message)

        product_ids = request.get("product_ids") or []
        product_types = request.get("product_types") or []
        if product_ids and product_types:
            mismatched = (
                self.db.query(Product.id)
                .filter(Product.id.in_(product_ids), Product.product_type.notin_(product_types))
                .count()
            )
            if mismatched:
                raise BusinessError(
                    "Some selected products do not match the selected product types",
                    {"product_ids": ["Selected products must match the selected product types"]},
                    status_code=422,
                )

        pdf_url = self._pdf_url(request.get("include_pdf", True), None, product_ids, request.get("pdf_layout") or "regular")
        return self._dispatch(self.customers.active(), message, template_id, request.get("content_variables"),
                              pdf_url, request.get("async_send", True), user_id, "WHATSAPP_PRODUCT_UPDATE")

    def _dispatch(self, customers: List[Customer], message, template_id, content_variables,
                  pdf_url, async_send: bool, user_id, action: str) -> dict:
        if not template_id and not message:
            message = settings.WHATSAPP_DEFAULT_MESSAGE

        invalid, valid = [], []
        for customer in customers:
            if phone.validate(phone.normalize(customer.whatsapp_number)):
                valid.append(customer)
            else:
                invalid.append({
                    "customer_id": customer.id,
                    "customer_name": customer.name,
                    "success": False,
                    "error": "Invalid WhatsApp number",
                })

        if async_send:
            jobs = []
            for customer in valid:
                job = WhatsAppJob(
                    customer_id=customer.id,
                    message=personalize(message, customer),
                    template_id=template_id,
                    content_variables=content_variables,
                    media_url=pdf_url,
                    max_attempts=settings.WHATSAPP_MAX_ATTEMPTS,
                    created_by=user_id,
                )
                self.db.add(job)
                jobs.append(job)
            write_log(self.db, user_id=user_id, action=action, resource="whatsapp", commit=False,
                      meta={"queued": len(jobs), "invalid": len(invalid), "pdf_url": pdf_url})
            self.db.commit()
            return {
                "queued": len(jobs),
                "invalid": len(invalid),
                "job_ids": [job.id for job in jobs],
                "results": invalid,
                "pdf_url": pdf_url,
            }

        results = [self._send_now(c, message, template_id, content_variables, pdf_url) for c in valid] + invalid
        successful = sum(1 for r in results if r["success"])
        write_log(self.db, user_id=user_id, action=action, resource="whatsapp",
                  status="SUCCESS" if successful == len(results) else "PARTIAL",
                  meta={"total": len(results), "successful": successful})
        return {
            "total": len(results),
            "successful": successful,
            "failed": len(results) - successful,
            "results": results,
            "pdf_url": pdf_url,
        }

    def _send_now(self, customer: Customer, message, template_id=None, content_variables=None, pdf_url=None) -> dict:
        entry = {"customer_id": customer.id, "customer_name": customer.name}
        try:
            result = self.client.send(
                phone.format_for_whatsapp(customer.whatsapp_number),
                body=personalize(message, customer),
                media_url=pdf_url,
                template_id=template_id,
                content_variables=content_variables,
            )
        except WhatsAppError as e:
            logger.error(f"WhatsApp message to customer {customer.id} failed: {e.message}")
            entry.update({"success": False, "error": e.message, "error_code": e.code})
            return entry
        entry.update({"success": True, "message_sid": result.get("sid"), "status": result.get("status")})
        return entry

    def send_test_message(self, customer_id: int, message: Optional[str] = None) -> dict:
        customer = self.customers.find_or_fail(customer_id)
        result = self._send_now(customer, message or TEST_MESSAGE)
        if not result["success"]:
            raise BusinessError(result["error"])
        return result

    @staticmethod
    def validate_number(number: str) -> dict:
        normalized = phone.normalize(number)
        valid = phone.validate(normalized)
        return {
            "valid": valid,
            "whatsapp_number": number,
            "formatted": phone.format_for_whatsapp(normalized) if valid else None,
            "country_code": phone.extract_country_code(normalized) if valid else None,
        }

    def job_summary(self, failed_limit: int = 50) -> dict:
        return {"counts": self.jobs.stats(), "failed": self.jobs.failed(failed_limit)}

    def retry_failed(self, job_ids: Optional[List[int]] = None) -> List[int]:
        """Put failed jobs back in the queue with a fresh attempt budget."""
        failed = self.jobs.failed(limit=1000)
        if job_ids:
            failed = [job for job in failed if job.id in set(job_ids)]
        for job in failed:
            job.status = JobStatus.PENDING.value
            job.attempts = 0
            job.last_error = None
        self.db.commit()
        logger.info(f"Re-queued {len(failed)} failed WhatsApp job(s)")
        return [job.id for job in failed]
