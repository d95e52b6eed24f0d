# backend/models/whatsapp_job.py
import enum
from sqlalchemy import Column, Integer, String, Text, JSON, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from database import Base


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


# Durable outbound WhatsApp message, consumed by the queue worker
class WhatsAppJob(Base):
    __tablename__ = "whatsapp_jobs"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    message = Column(Text, nullable=True)
    template_id = Column(String, nullable=True)
    content_variables = Column(JSON, nullable=True)
    media_url = Column(String, nullable=True)

    status = Column(String(20), nullable=False, default=JobStatus.PENDING.value, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    last_error = Column(Text, nullable=True)
    message_sid = Column(String, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer")
