from datetime import datetime
from fastapi import APIRouter, Depends, Path, Query
from typing import Optional

from order_engine.application.service import OrderService
from order_engine.application.schemas import AdminOrderPage, OrderRead, OrderStatistics, OrderStatusUpdate
from order_engine.domain.models import MAX_INT
from order_engine.domain.states import DeliveryStatus, PaymentStatus
from .auth import CurrentUser, require_admin
from .deps import get_order_service, naive_utc

router = APIRouter(prefix="/admin/orders", tags=["admin"])

@router.get("", response_model=AdminOrderPage)
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    delivery_status: Optional[DeliveryStatus] = Query(None, alias="deliveryStatus"),
    payment_status: Optional[PaymentStatus] = Query(None, alias="paymentStatus"),
    user_id: Optional[str] = Query(None, alias="userId", max_length=64),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    admin: CurrentUser = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    """List all orders with revenue and discount totals over completed payments."""
    return service.list_all(
        page,
        limit,
        delivery_status=delivery_status,
        payment_status=payment_status,
        user_id=user_id,
        start_date=naive_utc(start_date),
        end_date=naive_utc(end_date),
    )

# Declared before /{order_id} so "statistics" is not parsed as an id
@router.get("/statistics", response_model=OrderStatistics)
def order_statistics(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    admin: CurrentUser = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    return service.statistics(naive_utc(start_date), naive_utc(end_date))

@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: int = Path(..., ge=1, le=MAX_INT),
    admin: CurrentUser = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    return service.get(order_id)

@router.patch("/{order_id}/status", response_model=OrderRead)
def update_order_status(
    payload: OrderStatusUpdate,
    order_id: int = Path(..., ge=1, le=MAX_INT),
    admin: CurrentUser = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    return service.update_status(order_id, payload)

@router.delete("/{order_id}")
def delete_order(
    order_id: int = Path(..., ge=1, le=MAX_INT),
    admin: CurrentUser = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    service.delete(order_id)
    return {"detail": "Order deleted successfully", "orderId": order_id}
