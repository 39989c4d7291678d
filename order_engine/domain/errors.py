"""Exceptions raised by the order engine.

Every error carries an HTTP status, a stable machine-readable ``reason`` and
optional ``extra`` fields that are merged into the error response body.
"""

from typing import Any, Dict, Optional


class OrderServiceError(Exception):
    """Base exception for all order engine errors."""

    status_code = 500
    reason = "ORDER_SERVICE_ERROR"

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.message = message
        self.extra = extra or {}
        super().__init__(message)


class ValidationError(OrderServiceError):
    """Raised for malformed, missing or duplicate input."""

    status_code = 400
    reason = "VALIDATION_ERROR"


class NotFoundError(OrderServiceError):
    """Raised when an order does not exist (or is not visible to the caller)."""

    status_code = 404
    reason = "NOT_FOUND"

    def __init__(self, message: str = "Order not found", extra: Optional[Dict[str, Any]] = None):
        super().__init__(message, extra)


class ProductNotFoundError(NotFoundError):
    """Raised when an ordered product is missing or no longer active."""

    reason = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}", {"productId": product_id})


class InsufficientStockError(OrderServiceError):
    """Raised when a product does not have enough units left."""

    status_code = 400
    reason = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, name: str, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {name}. Available: {available}, Requested: {requested}",
            {"productId": product_id, "available": available, "requested": requested},
        )


class ReservationFailedError(OrderServiceError):
    """Raised when the conditional decrement lost a race without a clear cause."""

    status_code = 400
    reason = "RESERVATION_FAILED"

    def __init__(self, product_id: int, name: str):
        self.product_id = product_id
        super().__init__(f"Failed to reserve stock for product: {name}", {"productId": product_id})


class InvalidStateTransitionError(OrderServiceError):
    """Raised when an order is not in a state that allows the requested change."""

    status_code = 400
    reason = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        field: str,
        current: str,
        requested: Optional[str] = None,
        message: Optional[str] = None,
    ):
        self.field = field
        self.current = current
        self.requested = requested
        if message is None:
            message = f"Cannot change {field} from '{current}' to '{requested}'"
        extra = {"field": field, "currentState": current}
        if requested is not None:
            extra["requestedState"] = requested
        super().__init__(message, extra)


class SignatureMismatchError(OrderServiceError):
    """Raised when a gateway payment signature does not verify."""

    status_code = 400
    reason = "SIGNATURE_MISMATCH"

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__("Payment verification failed: invalid signature", {"orderId": order_id})


class PersistenceError(OrderServiceError):
    """Raised when the order store fails underneath an operation."""

    status_code = 500
    reason = "PERSISTENCE_ERROR"
