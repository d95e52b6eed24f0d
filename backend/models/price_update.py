# backend/models/price_update.py
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from database import Base
from services.pricing import apply_discount


# Append-only audit row written whenever price, stock or active discount change
class PriceUpdate(Base):
    __tablename__ = "price_updates"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    old_regular_price = Column(Numeric(10, 2), nullable=True)
    new_regular_price = Column(Numeric(10, 2), nullable=False)
    old_discount_type = Column(String(20), nullable=True)
    new_discount_type = Column(String(20), nullable=True)
    old_discount_value = Column(Numeric(10, 2), nullable=True)
    new_discount_value = Column(Numeric(10, 2), nullable=True)
    old_stock_quantity = Column(Numeric(10, 3), nullable=True)
    new_stock_quantity = Column(Numeric(10, 3), nullable=True)
    new_selling_price = Column(Numeric(10, 2), nullable=False)

    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    product = relationship("Product", back_populates="price_updates")
    updater = relationship("User")

    @property
    def old_selling_price(self):
        if self.old_regular_price is None:
            return None
        return apply_discount(self.old_regular_price, self.old_discount_type, self.old_discount_value)

    @property
    def price_change_percentage(self):
        """Change between old and new effective price, in percent (2dp)."""
        if not self.old_regular_price:
            return None

        old_price = self.old_selling_price
        new_price = apply_discount(self.new_regular_price, self.new_discount_type, self.new_discount_value)
        if old_price == 0:
            return None

        return round(float((new_price - old_price) / old_price * 100), 2)
