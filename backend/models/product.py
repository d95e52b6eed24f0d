# backend/models/product.py
from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, Date, DateTime, ForeignKey,
    CheckConstraint, func
)
from sqlalchemy.orm import relationship
from database import Base
from services import pricing


# Product offered on the order form.
# Prices are per one stock_unit (e.g. AED 100 per kg); quantities use the same unit.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    item_code = Column(String, unique=True, nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    image = Column(String, nullable=True)

    regular_price = Column(Numeric(10, 2), CheckConstraint("regular_price >= 0"), nullable=False)
    stock_quantity = Column(Numeric(10, 3), nullable=False, default=0)
    stock_unit = Column(String(20), nullable=False, default="kg")
    min_order_quantity = Column(Numeric(10, 3), nullable=True)
    max_order_quantity = Column(Numeric(10, 3), nullable=True)

    product_type = Column(String(20), nullable=False, default="standard", index=True)
    status = Column(String(20), nullable=False, default="active", index=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    category = relationship("Category", back_populates="products")
    discounts = relationship(
        "ProductDiscount", back_populates="product",
        cascade="all, delete-orphan", order_by="ProductDiscount.id",
    )
    variations = relationship("ProductVariation", back_populates="product", cascade="all, delete-orphan")
    price_updates = relationship("PriceUpdate", back_populates="product", cascade="all, delete-orphan")

    @property
    def active_discount(self):
        return pricing.active_discount(self)

    @property
    def selling_price(self):
        return pricing.selling_price(self)

    @property
    def has_discount(self) -> bool:
        return pricing.has_discount(self)

    @property
    def discount_percentage(self):
        return pricing.discount_percentage(self)


# Discount history of a product. Only rows with status "active" whose
# date window contains the current day take part in pricing.
class ProductDiscount(Base):
    __tablename__ = "product_discounts"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    discount_type = Column(String(20), nullable=False)  # percentage | fixed
    discount_value = Column(Numeric(10, 2), nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default="active", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product", back_populates="discounts")


# Pre-packed size of a product (e.g. "Carrot - 500 gm")
class ProductVariation(Base):
    __tablename__ = "product_variations"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity = Column(Numeric(10, 2), nullable=False)
    unit = Column(String(20), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    stock_quantity = Column(Integer, nullable=False, default=0)
    sku = Column(String, nullable=True, unique=True)
    enabled = Column(Boolean, nullable=False, default=True)

    product = relationship("Product", back_populates="variations")

    @property
    def display_name(self) -> str:
        quantity = float(self.quantity)
        unit = self.unit

        # Collapse to the larger unit from 1000 upwards
        if unit == "gm" and quantity >= 1000:
            quantity, unit = quantity / 1000, "kg"
        if unit == "ml" and quantity >= 1000:
            quantity, unit = quantity / 1000, "liter"

        if quantity == int(quantity):
            return f"{int(quantity)} {unit}"
        return f"{quantity:.2f} {unit}"

    @property
    def full_name(self) -> str:
        return f"{self.product.name} - {self.display_name}"

    @property
    def in_stock(self) -> bool:
        return (self.stock_quantity or 0) > 0
