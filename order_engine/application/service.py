from sqlalchemy.orm import Session
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from order_engine.core_settings import Settings
from order_engine.domain.errors import NotFoundError
from order_engine.domain.models import Order, OrderItem, Product
from order_engine.domain.states import DeliveryStatus, PaymentStatus
from order_engine.infrastructure.catalog import CatalogRepository
from order_engine.infrastructure.repositories import CartRepository, OrderFilter, OrderRepository
from .builder import OrderBuilder
from .lifecycle import OrderLifecycle
from .payments import PaymentVerifier
from .reporting import OrderReporting
from .reservation import StockReservation
from .schemas import (
    AdminOrderPage,
    CancellationRead,
    OrderCreate,
    OrderPage,
    OrderRead,
    OrderStatistics,
    OrderStatusUpdate,
    PaymentVerificationCreate,
    PaymentVerificationRead,
)

class OrderService:
    """Entry point used by the routes: one instance per request session."""

    def __init__(self, db: Session, catalog: CatalogRepository, settings: Settings):
        self.db = db
        self.catalog = catalog
        self.orders = OrderRepository(db)
        self.reservation = StockReservation(catalog, max_workers=settings.RESERVATION_WORKERS)
        self.builder = OrderBuilder(self.orders, self.reservation)
        self.lifecycle = OrderLifecycle(self.orders, self.reservation)
        self.payments = PaymentVerifier(self.orders, CartRepository(db), settings.PAYMENT_GATEWAY_SECRET)
        self.reporting = OrderReporting(self.orders, top_products_limit=settings.TOP_PRODUCTS_LIMIT)

    # Commands

    def create(self, user_id: str, data: OrderCreate) -> OrderRead:
        order = self.builder.build(
            user_id,
            data.items,
            data.payment_method,
            data.shipping_address,
            notes=data.notes,
        )
        return self.enrich(order)

    def cancel(self, order_id: int, user_id: str) -> CancellationRead:
        cancellation = self.lifecycle.cancel(order_id, user_id)
        return CancellationRead(
            order=self.enrich(cancellation.order),
            stock_updates=cancellation.stock_updates(),
        )

    def verify_payment(self, user_id: str, payload: PaymentVerificationCreate) -> PaymentVerificationRead:
        order = self.payments.verify(user_id, payload)
        return PaymentVerificationRead(order_id=order.id, payment_id=order.transaction_id)

    def update_status(self, order_id: int, data: OrderStatusUpdate) -> OrderRead:
        order = self.lifecycle.update_status(
            order_id,
            delivery_status=data.delivery_status,
            payment_status=data.payment_status,
            transaction_id=data.transaction_id,
        )
        return self.enrich(order)

    def delete(self, order_id: int) -> None:
        self.lifecycle.delete(order_id)

    # Queries

    def get_for_user(self, order_id: int, user_id: str) -> OrderRead:
        order = self.orders.get_for_user(order_id, user_id)
        if not order:
            raise NotFoundError()
        return self.enrich(order)

    def get(self, order_id: int) -> OrderRead:
        order = self.orders.get(order_id)
        if not order:
            raise NotFoundError()
        return self.enrich(order)

    def list_for_user(self, user_id: str, page: int, limit: int, status: Optional[DeliveryStatus] = None) -> OrderPage:
        filters = OrderFilter(user_id=user_id, delivery_status=status.value if status else None)
        orders, meta = self.reporting.page(filters, page, limit)
        return OrderPage(data=self.enrich_many(orders), pagination=meta)

    def list_all(
        self,
        page: int,
        limit: int,
        delivery_status: Optional[DeliveryStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        user_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> AdminOrderPage:
        filters = OrderFilter(
            user_id=user_id,
            delivery_status=delivery_status.value if delivery_status else None,
            payment_status=payment_status.value if payment_status else None,
            start_date=start_date,
            end_date=end_date,
        )
        orders, meta = self.reporting.page(filters, page, limit)
        return AdminOrderPage(
            data=self.enrich_many(orders),
            pagination=meta,
            statistics=self.reporting.revenue(filters),
        )

    def statistics(self, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None) -> OrderStatistics:
        return OrderStatistics(**self.reporting.statistics(start_date, end_date))

    # Read-time join with the catalog

    def enrich(self, order: Order) -> OrderRead:
        return self.enrich_many([order])[0]

    def enrich_many(self, orders: Iterable[Order]) -> List[OrderRead]:
        """Attach current catalog data to each line, flagging changes since the order was placed."""
        orders = list(orders)
        products = self.catalog.find_many(item.product_id for order in orders for item in order.items)
        return [self._order_dict(order, products) for order in orders]

    def _order_dict(self, order: Order, products: Dict[int, Product]) -> OrderRead:
        order_dict: Dict[str, Any] = {
            "id": order.id,
            "user_id": order.user_id,
            "total_amount": float(order.total_amount),
            "payment_status": order.payment_status,
            "delivery_status": order.delivery_status,
            "payment_method": order.payment_method,
            "shipping_address": {
                "name": order.shipping_name,
                "phone": order.shipping_phone,
                "street": order.shipping_street,
                "city": order.shipping_city,
                "state": order.shipping_state,
                "zip": order.shipping_zip,
            },
            "notes": order.notes,
            "transaction_id": order.transaction_id,
            "gateway_order_id": order.gateway_order_id,
            "gateway_payment_id": order.gateway_payment_id,
            "created_at": order.created_at,
            "updated_at": order.updated_at,
            "cancelled_at": order.cancelled_at,
            "items": [self._item_dict(item, products.get(item.product_id)) for item in order.items],
        }
        return OrderRead(**order_dict)

    def _item_dict(self, item: OrderItem, current_product: Optional[Product]) -> Dict[str, Any]:
        item_dict: Dict[str, Any] = {
            "product_id": item.product_id,
            "quantity": item.quantity,
            "price": float(item.price),
            "discount": float(item.discount),
            "final_price": float(item.final_price),
            "name": item.name,
            "image": item.image,
        }
        if current_product is None or not current_product.is_active:
            item_dict["product"] = {"id": item.product_id, "data_status": "deleted"}
            return item_dict

        images = current_product.images or []
        if (current_product.name != item.name or
                Decimal(current_product.price) != Decimal(item.price)):
            data_status = "modified"
        else:
            data_status = "current"
        item_dict["product"] = {
            "id": current_product.id,
            "name": current_product.name,
            "image": images[0] if images else None,
            "price": float(current_product.price),
            "data_status": data_status,
        }
        return item_dict
