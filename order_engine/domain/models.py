from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import String, ForeignKey, Numeric, DateTime, Integer, Boolean, Text, JSON, Index, CheckConstraint, func
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .states import PaymentStatus, DeliveryStatus

# Largest value an Integer id or quantity column holds
MAX_INT = 2**31 - 1

class Base(DeclarativeBase):
    pass

class Product(Base):
    """Catalog record. Owned by the catalog; orders only read it and move ``stock``."""
    __tablename__ = "products"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),)
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(100), default="general")
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    # Percent, 0-100
    discount: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"))
    images: Mapped[list] = mapped_column(JSON, default=list)
    stock: Mapped[int] = mapped_column(Integer, default=0)
    # Soft delete flag
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (Index("idx_orders_user_created", "user_id", "created_at"),)
    id: Mapped[int] = mapped_column(primary_key=True)
    # Identity supplied by the auth layer; never changes after creation
    user_id: Mapped[str] = mapped_column(String(64))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    payment_status: Mapped[str] = mapped_column(String(30), default=PaymentStatus.PENDING.value, index=True)
    delivery_status: Mapped[str] = mapped_column(String(30), default=DeliveryStatus.PENDING.value, index=True)
    payment_method: Mapped[str] = mapped_column(String(50))
    # Shipping address snapshot
    shipping_name: Mapped[str] = mapped_column(String(200))
    shipping_phone: Mapped[str] = mapped_column(String(50))
    shipping_street: Mapped[str] = mapped_column(String(255))
    shipping_city: Mapped[str] = mapped_column(String(100))
    shipping_state: Mapped[str] = mapped_column(String(100))
    shipping_zip: Mapped[str] = mapped_column(String(20))
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Set during payment verification
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    gateway_order_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    gateway_payment_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    gateway_signature: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
        lazy="selectin",
    )

class OrderItem(Base):
    __tablename__ = "order_items"
    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    # Checkout order of the line within its order
    position: Mapped[int] = mapped_column(Integer, default=0)
    # Product ID - reference only, the catalog owns the product
    product_id: Mapped[int] = mapped_column(Integer, index=True)
    quantity: Mapped[int] = mapped_column(Integer)
    # Price snapshot captured at order creation time
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    discount: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"))
    final_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    order: Mapped[Order] = relationship("Order", back_populates="items")

class Cart(Base):
    """Per-user cart snapshot. This service only ever clears it."""
    __tablename__ = "carts"
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    items: Mapped[list] = mapped_column(JSON, default=list)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
