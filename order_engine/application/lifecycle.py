from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from order_engine.domain.errors import InvalidStateTransitionError, NotFoundError, ValidationError
from order_engine.domain.models import Order
from order_engine.domain.states import (
    DeliveryStatus,
    PaymentStatus,
    ensure_delivery_transition,
    ensure_payment_transition,
)
from order_engine.infrastructure.repositories import OrderRepository
from shared.core import get_logger
from .reservation import CompensationResult, StockReservation

logger = get_logger(__name__)


@dataclass
class CancellationResult:
    order: Order
    stock_results: List[CompensationResult]

    @property
    def failed(self) -> List[CompensationResult]:
        return [r for r in self.stock_results if not r.success]

    def stock_updates(self) -> Dict[str, Any]:
        successful = [r for r in self.stock_results if r.success]
        return {
            "successful": len(successful),
            "failed": len(self.failed),
            "details": [r.as_dict() for r in successful],
            "errors": [r.as_dict() for r in self.failed],
        }


class OrderLifecycle:
    """Status changes on existing orders.

    Every change is a conditional UPDATE on the state the caller saw, so a
    concurrent change makes the update miss instead of being overwritten.
    """

    def __init__(self, orders: OrderRepository, reservation: StockReservation):
        self.orders = orders
        self.reservation = reservation

    def _load(self, order_id: int, user_id: Optional[str] = None) -> Order:
        if user_id is not None:
            order = self.orders.get_for_user(order_id, user_id)
        else:
            order = self.orders.get(order_id)
        if order is None:
            raise NotFoundError()
        return order

    def cancel(
        self,
        order_id: int,
        user_id: Optional[str] = None,
        expected: Optional[Dict[str, Any]] = None,
        values: Optional[Dict[str, Any]] = None,
    ) -> CancellationResult:
        """Cancel a pending order and give its stock back.

        ``user_id`` scopes the cancellation to the owner; admins pass None.
        ``expected`` and ``values`` carry other column changes that must land
        in the same conditional update as the cancellation.
        """
        matched = self.orders.conditional_status_update(
            order_id,
            expected=dict(expected or {}, delivery_status=DeliveryStatus.PENDING.value),
            values=dict(
                values or {},
                delivery_status=DeliveryStatus.CANCELLED.value,
                cancelled_at=datetime.utcnow(),
            ),
            user_id=user_id,
        )
        if not matched:
            existing = self._load(order_id, user_id)
            if existing.delivery_status != DeliveryStatus.PENDING.value:
                message = f"Cannot cancel order in '{existing.delivery_status}' status"
            else:
                message = "Order status changed concurrently, reload and retry"
            raise InvalidStateTransitionError(
                field="deliveryStatus",
                current=existing.delivery_status,
                requested=DeliveryStatus.CANCELLED.value,
                message=message,
            )

        order = self._load(order_id)
        results = self.reservation.restore(
            {"product_id": item.product_id, "quantity": item.quantity} for item in order.items
        )
        cancellation = CancellationResult(order=order, stock_results=results)
        if cancellation.failed:
            # The cancellation stands; the stock counters need a manual fix
            logger.critical(
                f"Some stock updates failed during order cancellation: order {order_id}",
                extra={'extra_fields': {
                    'order_id': order_id,
                    'failed_updates': [r.as_dict() for r in cancellation.failed],
                }},
            )
        logger.info(f"Order {order_id} cancelled, restored stock for {len(results) - len(cancellation.failed)}/{len(results)} line(s)")
        return cancellation

    def update_status(
        self,
        order_id: int,
        delivery_status: Optional[DeliveryStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        transaction_id: Optional[str] = None,
    ) -> Order:
        if delivery_status is None and payment_status is None and transaction_id is None:
            raise ValidationError("At least one of deliveryStatus, paymentStatus or transactionId is required")

        order = self._load(order_id)
        if delivery_status is not None:
            ensure_delivery_transition(order.delivery_status, delivery_status)
        if payment_status is not None:
            ensure_payment_transition(order.payment_status, payment_status)

        expected: Dict[str, Any] = {}
        values: Dict[str, Any] = {}
        if payment_status is not None:
            expected["payment_status"] = order.payment_status
            values["payment_status"] = payment_status.value
        if transaction_id is not None:
            values["transaction_id"] = transaction_id

        if delivery_status == DeliveryStatus.CANCELLED:
            # Same path as a customer cancellation so stock goes back; the
            # payment change is applied by the same conditional update
            self.cancel(order_id, expected=expected, values=values)
        else:
            if delivery_status is not None:
                expected["delivery_status"] = order.delivery_status
                values["delivery_status"] = delivery_status.value
            self._apply(order_id, expected, values)

        logger.info(
            f"Order {order_id} status updated",
            extra={'extra_fields': {
                'order_id': order_id,
                'delivery_status': delivery_status.value if delivery_status else None,
                'payment_status': payment_status.value if payment_status else None,
            }},
        )
        return self._load(order_id)

    def _apply(self, order_id: int, expected: Dict[str, Any], values: Dict[str, Any]) -> None:
        if values and not self.orders.conditional_status_update(order_id, expected, values):
            current = self._load(order_id)
            raise InvalidStateTransitionError(
                field="status",
                current=f"{current.delivery_status}/{current.payment_status}",
                message="Order status changed concurrently, reload and retry",
            )

    def delete(self, order_id: int) -> None:
        if not self.orders.delete(order_id):
            raise NotFoundError()
        logger.info(f"Order {order_id} purged")
