from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, Optional

from order_engine.domain.models import MAX_INT
from order_engine.domain.states import DeliveryStatus, PaymentStatus

class ApiModel(BaseModel):
    """JSON uses camelCase on the wire, snake_case in Python."""
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True

class ShippingAddress(ApiModel):
    # Lengths follow the shipping_* columns
    name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=1, max_length=50)
    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip: str = Field(..., min_length=1, max_length=20)

class OrderItemCreate(ApiModel):
    # Loose types on purpose: the builder reports bad references and quantities
    product: Any = None
    quantity: Any = None

class OrderCreate(ApiModel):
    items: Optional[list[OrderItemCreate]] = None
    payment_method: Optional[str] = Field(None, min_length=1, max_length=50)
    shipping_address: Optional[ShippingAddress] = None
    notes: Optional[str] = None

class OrderStatusUpdate(ApiModel):
    delivery_status: Optional[DeliveryStatus] = None
    payment_status: Optional[PaymentStatus] = None
    transaction_id: Optional[str] = Field(None, min_length=1, max_length=100)

class PaymentVerificationCreate(ApiModel):
    order_id: int = Field(..., ge=1, le=MAX_INT)
    gateway_payment_id: str = Field(..., min_length=1, max_length=100)
    gateway_order_id: str = Field(..., min_length=1, max_length=100)
    gateway_signature: str = Field(..., min_length=1, max_length=256)

class PaymentVerificationRead(ApiModel):
    order_id: int
    payment_id: str

class ProductSummary(ApiModel):
    id: int
    name: Optional[str] = None
    image: Optional[str] = None
    price: Optional[float] = None
    # "current", "modified" or "deleted" relative to the line snapshot
    data_status: str

class OrderItemRead(ApiModel):
    product_id: int
    quantity: int
    price: float
    discount: float
    final_price: float
    name: Optional[str] = None
    image: Optional[str] = None
    # Metadata (not stored, joined from the catalog at read time)
    product: Optional[ProductSummary] = None

class OrderRead(ApiModel):
    id: int
    user_id: str
    items: list[OrderItemRead]
    total_amount: float
    payment_status: PaymentStatus
    delivery_status: DeliveryStatus
    payment_method: str
    shipping_address: ShippingAddress
    notes: Optional[str] = None
    transaction_id: Optional[str] = None
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

class Pagination(ApiModel):
    current_page: int
    total_pages: int
    total_items: int
    limit: int

class OrderPage(ApiModel):
    data: list[OrderRead]
    pagination: Pagination

class RevenueStatistics(ApiModel):
    total_revenue: float
    total_discount: float

class AdminOrderPage(OrderPage):
    statistics: RevenueStatistics

class StockUpdateSummary(ApiModel):
    successful: int
    failed: int
    details: list[dict]
    errors: list[dict] = []

class CancellationRead(ApiModel):
    order: OrderRead
    stock_updates: StockUpdateSummary

class StatusBucket(ApiModel):
    status: str
    count: int
    revenue: float

class DayBucket(ApiModel):
    date: str
    count: int
    revenue: float

class TopProduct(ApiModel):
    product_id: int
    name: Optional[str] = None
    total_quantity: int
    total_revenue: float

class OrderStatistics(ApiModel):
    orders_by_status: list[StatusBucket]
    orders_by_day: list[DayBucket]
    top_products: list[TopProduct]
