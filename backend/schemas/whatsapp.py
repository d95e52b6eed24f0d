# backend/schemas/whatsapp.py
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from schemas.common import ORMBase

PdfLayout = Literal["regular", "catalog"]


class GeneratePriceListRequest(BaseModel):
    product_ids: List[int] = []
    pdf_layout: PdfLayout = "regular"


# Request schema for sending a message to selected (or all) customers
class SendMessageRequest(BaseModel):
    customer_ids: List[int] = []
    send_to_all: bool = False
    message: Optional[str] = Field(None, max_length=1600)
    template_id: Optional[str] = None
    content_variables: Optional[Dict[str, Any]] = None
    include_pdf: bool = True
    product_ids: List[int] = []
    pdf_layout: PdfLayout = "regular"
    custom_pdf_url: Optional[str] = None
    async_send: bool = True


class ProductUpdateRequest(BaseModel):
    product_ids: List[int] = []
    product_types: List[Literal["daily", "standard"]] = []
    message: Optional[str] = Field(None, max_length=1600)
    template_id: Optional[str] = None
    content_variables: Optional[Dict[str, Any]] = None
    include_pdf: bool = True
    pdf_layout: PdfLayout = "regular"
    async_send: bool = True


class TestMessageRequest(BaseModel):
    message: Optional[str] = Field(None, max_length=1600)


class ValidateNumberRequest(BaseModel):
    whatsapp_number: str = Field(min_length=1, max_length=30)


class RetryJobsRequest(BaseModel):
    job_ids: List[int] = []


class JobOut(ORMBase):
    id: int
    customer_id: int
    status: str
    attempts: int
    max_attempts: int
    last_error: Optional[str] = None
    message_sid: Optional[str] = None
    media_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class JobSummary(BaseModel):
    counts: Dict[str, int]
    failed: List[JobOut]
