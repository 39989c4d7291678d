"""
Order status axes and their allowed transitions.

Delivery and payment are tracked independently; the tables below are the
only source of truth for which moves are legal.
"""

from enum import Enum
from typing import Dict, FrozenSet

from .errors import InvalidStateTransitionError


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


DELIVERY_TRANSITIONS: Dict[DeliveryStatus, FrozenSet[DeliveryStatus]] = {
    DeliveryStatus.PENDING: frozenset([DeliveryStatus.PROCESSING, DeliveryStatus.CANCELLED]),
    DeliveryStatus.PROCESSING: frozenset([DeliveryStatus.SHIPPED]),
    DeliveryStatus.SHIPPED: frozenset([DeliveryStatus.DELIVERED]),
    DeliveryStatus.DELIVERED: frozenset(),
    DeliveryStatus.CANCELLED: frozenset(),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset([PaymentStatus.COMPLETED, PaymentStatus.FAILED]),
    # a failed payment may be retried
    PaymentStatus.FAILED: frozenset([PaymentStatus.PENDING]),
    PaymentStatus.COMPLETED: frozenset([PaymentStatus.REFUNDED]),
    PaymentStatus.REFUNDED: frozenset(),
}

TERMINAL_DELIVERY_STATES: FrozenSet[DeliveryStatus] = frozenset([
    DeliveryStatus.DELIVERED,
    DeliveryStatus.CANCELLED,
])

# Payment states from which a gateway confirmation is accepted
VERIFIABLE_PAYMENT_STATES: FrozenSet[PaymentStatus] = frozenset([
    PaymentStatus.PENDING,
    PaymentStatus.FAILED,
])


def can_transition_delivery(current: DeliveryStatus, target: DeliveryStatus) -> bool:
    return DeliveryStatus(target) in DELIVERY_TRANSITIONS[DeliveryStatus(current)]


def can_transition_payment(current: PaymentStatus, target: PaymentStatus) -> bool:
    return PaymentStatus(target) in PAYMENT_TRANSITIONS[PaymentStatus(current)]


def ensure_delivery_transition(current: DeliveryStatus, target: DeliveryStatus) -> None:
    if not can_transition_delivery(current, target):
        current = DeliveryStatus(current)
        message = None
        if current in TERMINAL_DELIVERY_STATES:
            message = f"Order is already {current.value}"
        raise InvalidStateTransitionError(
            field="deliveryStatus",
            current=current.value,
            requested=DeliveryStatus(target).value,
            message=message,
        )


def ensure_payment_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    if not can_transition_payment(current, target):
        raise InvalidStateTransitionError(
            field="paymentStatus",
            current=PaymentStatus(current).value,
            requested=PaymentStatus(target).value,
        )
