import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from order_engine.domain.models import Order
from order_engine.infrastructure.repositories import OrderFilter, OrderRepository


def pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "current_page": page,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "total_items": total,
        "limit": limit,
    }


class OrderReporting:
    """Read paths: paged listings and aggregate statistics."""

    def __init__(self, orders: OrderRepository, top_products_limit: int = 5):
        self.orders = orders
        self.top_products_limit = top_products_limit

    def page(self, filters: OrderFilter, page: int, limit: int) -> Tuple[List[Order], Dict[str, int]]:
        skip = (page - 1) * limit
        orders = self.orders.list(filters, skip=skip, limit=limit)
        total = self.orders.count(filters)
        return orders, pagination(page, limit, total)

    def revenue(self, filters: OrderFilter) -> Dict[str, Any]:
        return self.orders.revenue_summary(filters)

    def statistics(self, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None) -> Dict[str, Any]:
        window = OrderFilter(start_date=start_date, end_date=end_date)
        return {
            "orders_by_status": self.orders.orders_by_status(window),
            "orders_by_day": self.orders.orders_by_day(window),
            "top_products": self.orders.top_products(window, limit=self.top_products_limit),
        }
