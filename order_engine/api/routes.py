from fastapi import APIRouter, Depends, Path, Query
from typing import Optional

from order_engine.application.service import OrderService
from order_engine.application.schemas import (
    CancellationRead,
    OrderCreate,
    OrderPage,
    OrderRead,
    PaymentVerificationCreate,
    PaymentVerificationRead,
)
from order_engine.domain.models import MAX_INT
from order_engine.domain.states import DeliveryStatus
from .auth import CurrentUser, get_current_user
from .deps import get_order_service

router = APIRouter(tags=["orders"])

@router.post("/orders", response_model=OrderRead, status_code=201)
def create_order(
    payload: OrderCreate,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Place an order, reserving stock for every line."""
    return service.create(user.id, payload)

@router.get("/user/orders", response_model=OrderPage)
def list_user_orders(
    page: int = Query(1, ge=1, description="Page number, starting at 1"),
    limit: int = Query(10, ge=1, le=100, description="Maximum number of orders per page"),
    status: Optional[DeliveryStatus] = Query(None, description="Filter by delivery status"),
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """List the caller's orders, newest first."""
    return service.list_for_user(user.id, page, limit, status)

@router.get("/user/orders/{order_id}", response_model=OrderRead)
def get_user_order(
    order_id: int = Path(..., ge=1, le=MAX_INT),
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return service.get_for_user(order_id, user.id)

@router.patch("/user/orders/{order_id}/cancel", response_model=CancellationRead)
def cancel_order(
    order_id: int = Path(..., ge=1, le=MAX_INT),
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Cancel a pending order and give its stock back."""
    return service.cancel(order_id, user.id)

@router.post("/cart/verifypayment", response_model=PaymentVerificationRead)
def verify_payment(
    payload: PaymentVerificationCreate,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Confirm a gateway payment for one of the caller's orders."""
    return service.verify_payment(user.id, payload)
