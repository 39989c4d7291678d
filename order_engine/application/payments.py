"""Gateway payment confirmation."""

import hashlib
import hmac

from order_engine.domain.errors import InvalidStateTransitionError, NotFoundError, SignatureMismatchError
from order_engine.domain.models import Order
from order_engine.domain.states import DeliveryStatus, PaymentStatus, VERIFIABLE_PAYMENT_STATES
from order_engine.infrastructure.repositories import CartRepository, OrderRepository
from shared.core import get_logger
from .schemas import PaymentVerificationCreate

logger = get_logger(__name__)


def sign(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    """HMAC-SHA256 hex digest the gateway sends for ``<order_id>|<payment_id>``."""
    message = f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class PaymentVerifier:
    def __init__(self, orders: OrderRepository, carts: CartRepository, secret: str):
        self.orders = orders
        self.carts = carts
        self.secret = secret

    def verify(self, user_id: str, payload: PaymentVerificationCreate) -> Order:
        order = self.orders.get_for_user(payload.order_id, user_id)
        if order is None:
            raise NotFoundError()

        current_payment = order.payment_status
        if PaymentStatus(current_payment) not in VERIFIABLE_PAYMENT_STATES or order.delivery_status != DeliveryStatus.PENDING.value:
            raise InvalidStateTransitionError(
                field="paymentStatus",
                current=current_payment,
                requested=PaymentStatus.COMPLETED.value,
                message=f"Cannot verify payment for order in '{current_payment}/{order.delivery_status}' status",
            )

        gateway_refs = {
            "gateway_order_id": payload.gateway_order_id,
            "gateway_payment_id": payload.gateway_payment_id,
            "gateway_signature": payload.gateway_signature,
        }
        expected = {"payment_status": current_payment, "delivery_status": DeliveryStatus.PENDING.value}
        expected_signature = sign(self.secret, payload.gateway_order_id, payload.gateway_payment_id)

        if not hmac.compare_digest(expected_signature.encode("utf-8"), payload.gateway_signature.encode("utf-8")):
            # Keep the order around for inspection, just mark the attempt
            self.orders.conditional_status_update(
                order.id,
                expected=expected,
                values=dict(gateway_refs, payment_status=PaymentStatus.FAILED.value),
                user_id=user_id,
            )
            logger.warning(f"Payment signature mismatch for order {order.id}")
            raise SignatureMismatchError(order.id)

        matched = self.orders.conditional_status_update(
            order.id,
            expected=expected,
            values=dict(
                gateway_refs,
                payment_status=PaymentStatus.COMPLETED.value,
                delivery_status=DeliveryStatus.PROCESSING.value,
                transaction_id=payload.gateway_payment_id,
            ),
            user_id=user_id,
        )
        if not matched:
            current = self.orders.get(order.id)
            raise InvalidStateTransitionError(
                field="paymentStatus",
                current=current.payment_status if current else current_payment,
                requested=PaymentStatus.COMPLETED.value,
                message="Order status changed during payment verification",
            )

        self.carts.clear(user_id)
        logger.info(f"Payment {payload.gateway_payment_id} verified for order {order.id}")
        return self.orders.get(order.id)
