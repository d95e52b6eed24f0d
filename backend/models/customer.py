# backend/models/customer.py
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from database import Base


# Recipient of WhatsApp price lists and owner of orders
class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    whatsapp_number = Column(String(20), unique=True, nullable=False, index=True) # Stored normalised (+9715...)
    address = Column(Text, nullable=True)
    area = Column(String, nullable=True)
    landmark = Column(String, nullable=True)
    remarks = Column(Text, nullable=True)
    active = Column(Boolean, nullable=False, default=True, index=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    orders = relationship("Order", back_populates="customer")
