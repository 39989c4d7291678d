from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from order_engine.domain.errors import OrderServiceError, PersistenceError, ValidationError
from order_engine.domain.models import MAX_INT, Order, OrderItem
from order_engine.domain.states import DeliveryStatus, PaymentStatus
from order_engine.infrastructure.repositories import OrderRepository
from shared.core import get_logger
from .reservation import ReservationRecord, ReservedLine, StockReservation
from .schemas import OrderItemCreate, ShippingAddress

logger = get_logger(__name__)

CENT = Decimal("0.01")


def final_price(price: Decimal, discount: Decimal) -> Decimal:
    """Unit price after a percent discount, rounded to cents."""
    return (price * (1 - discount / Decimal(100))).quantize(CENT, rounding=ROUND_HALF_UP)


def _as_positive_int(value: Any) -> Optional[int]:
    """Accepts ints, integral floats and ASCII digit strings within the Integer column range."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    elif isinstance(value, str) and value.isascii() and value.isdigit():
        number = int(value)
    else:
        return None
    return number if 0 < number <= MAX_INT else None


class OrderBuilder:
    """Turns a checkout request into a persisted order.

    Reserves stock line by line, prices the lines from the reserved snapshots
    and stores the order. Anything that goes wrong after the first reservation
    gives the reserved stock back before the error leaves this class.
    """

    def __init__(self, orders: OrderRepository, reservation: StockReservation):
        self.orders = orders
        self.reservation = reservation

    def validate(
        self,
        items: Optional[Sequence[OrderItemCreate]],
        payment_method: Optional[str],
        shipping_address: Optional[ShippingAddress],
    ) -> List[Tuple[int, int]]:
        if not items:
            raise ValidationError("Items array is required and cannot be empty")
        if not payment_method or shipping_address is None:
            raise ValidationError("Payment method and shipping address are required")

        lines = []
        for item in items:
            product_id = _as_positive_int(item.product)
            if product_id is None:
                raise ValidationError(f"Invalid product ID: {item.product}", {"product": item.product})
            quantity = _as_positive_int(item.quantity)
            if quantity is None:
                raise ValidationError(
                    f"Invalid quantity for product {product_id}. Must be a positive integer",
                    {"productId": product_id, "quantity": item.quantity},
                )
            lines.append((product_id, quantity))

        product_ids = [product_id for product_id, _ in lines]
        if len(product_ids) != len(set(product_ids)):
            raise ValidationError("Duplicate products in order. Please combine quantities for the same product")
        return lines

    def build(
        self,
        user_id: str,
        items: Optional[Sequence[OrderItemCreate]],
        payment_method: Optional[str],
        shipping_address: Optional[ShippingAddress],
        notes: Optional[str] = None,
    ) -> Order:
        # Nothing is reserved until the whole request is known to be well formed
        lines = self.validate(items, payment_method, shipping_address)

        record = ReservationRecord()
        try:
            reserved = [self.reservation.reserve(product_id, quantity, record) for product_id, quantity in lines]
            order = self._assemble(user_id, reserved, payment_method, shipping_address, notes)
            order = self._persist(order)
        except Exception as e:
            logger.error(
                f"Error creating order: {e}",
                exc_info=not isinstance(e, OrderServiceError),
                extra={'extra_fields': {
                    'user_id': user_id,
                    'items': [{'product': p, 'quantity': q} for p, q in lines],
                    'stock_updates_attempted': len(record),
                }},
            )
            self.reservation.rollback(record)
            raise

        logger.info(f"Order {order.id} created for user {user_id} with {len(order.items)} item(s), total {order.total_amount}")
        return order

    def _assemble(
        self,
        user_id: str,
        reserved: List[ReservedLine],
        payment_method: str,
        shipping_address: ShippingAddress,
        notes: Optional[str],
    ) -> Order:
        total = Decimal("0.00")
        order_items = []
        for position, line in enumerate(reserved):
            snapshot = line.snapshot
            unit_price = final_price(snapshot.price, snapshot.discount)
            order_items.append(OrderItem(
                position=position,
                product_id=line.product_id,
                quantity=line.quantity,
                price=snapshot.price,
                discount=snapshot.discount,
                final_price=unit_price,
                name=snapshot.name,
                image=snapshot.image,
            ))
            total += unit_price * line.quantity

        if total <= 0:
            raise ValidationError("Invalid order total amount", {"totalAmount": str(total)})

        return Order(
            user_id=user_id,
            items=order_items,
            total_amount=total,
            payment_method=payment_method,
            shipping_name=shipping_address.name,
            shipping_phone=shipping_address.phone,
            shipping_street=shipping_address.street,
            shipping_city=shipping_address.city,
            shipping_state=shipping_address.state,
            shipping_zip=shipping_address.zip,
            notes=notes,
            payment_status=PaymentStatus.PENDING.value,
            delivery_status=DeliveryStatus.PENDING.value,
            created_at=datetime.utcnow(),
        )

    def _persist(self, order: Order) -> Order:
        try:
            return self.orders.add(order)
        except SQLAlchemyError as e:
            self.orders.db.rollback()
            raise PersistenceError("Failed to create order due to server error") from e
