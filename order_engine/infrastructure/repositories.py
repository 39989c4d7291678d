from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, delete, func, desc
from sqlalchemy.orm import Session

from order_engine.domain.models import Order, OrderItem, Cart
from order_engine.domain.states import PaymentStatus


def _money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


@dataclass
class OrderFilter:
    user_id: Optional[str] = None
    delivery_status: Optional[str] = None
    payment_status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def clauses(self) -> list:
        clauses = []
        if self.user_id is not None:
            clauses.append(Order.user_id == self.user_id)
        if self.delivery_status is not None:
            clauses.append(Order.delivery_status == self.delivery_status)
        if self.payment_status is not None:
            clauses.append(Order.payment_status == self.payment_status)
        if self.start_date is not None:
            clauses.append(Order.created_at >= self.start_date)
        if self.end_date is not None:
            clauses.append(Order.created_at <= self.end_date)
        return clauses


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(self, order: Order) -> Order:
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def get(self, order_id: int) -> Optional[Order]:
        return self.db.get(Order, order_id, populate_existing=True)

    def get_for_user(self, order_id: int, user_id: str) -> Optional[Order]:
        return self.db.execute(
            select(Order)
            .where(Order.id == order_id, Order.user_id == user_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def list(self, filters: OrderFilter, skip: int = 0, limit: int = 10) -> List[Order]:
        stmt = (
            select(Order)
            .where(*filters.clauses())
            .order_by(desc(Order.created_at), desc(Order.id))
            .offset(skip)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def count(self, filters: OrderFilter) -> int:
        return self.db.execute(
            select(func.count(Order.id)).where(*filters.clauses())
        ).scalar_one()

    def conditional_status_update(
        self,
        order_id: int,
        expected: Dict[str, Any],
        values: Dict[str, Any],
        user_id: Optional[str] = None,
    ) -> bool:
        """Apply ``values`` only if the order still has the ``expected`` column values.

        Returns False when the row did not match (missing, foreign or moved on).
        """
        clauses = [Order.id == order_id]
        if user_id is not None:
            clauses.append(Order.user_id == user_id)
        for column, value in expected.items():
            clauses.append(getattr(Order, column) == value)
        values = dict(values, updated_at=datetime.utcnow())
        result = self.db.execute(
            update(Order).where(*clauses).values(**values).execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1

    def delete(self, order_id: int) -> bool:
        self.db.execute(delete(OrderItem).where(OrderItem.order_id == order_id))
        result = self.db.execute(delete(Order).where(Order.id == order_id))
        self.db.commit()
        return result.rowcount == 1

    # Reporting

    def revenue_summary(self, filters: OrderFilter) -> Dict[str, Decimal]:
        """Revenue and discount given away over completed payments matching ``filters``."""
        clauses = filters.clauses() + [Order.payment_status == PaymentStatus.COMPLETED.value]
        revenue = self.db.execute(
            select(func.coalesce(func.sum(Order.total_amount), 0)).where(*clauses)
        ).scalar_one()
        discount = self.db.execute(
            select(
                func.coalesce(
                    func.sum((OrderItem.price - OrderItem.final_price) * OrderItem.quantity), 0
                )
            )
            .join(Order, OrderItem.order_id == Order.id)
            .where(*clauses)
        ).scalar_one()
        return {"total_revenue": _money(revenue), "total_discount": _money(discount)}

    def orders_by_status(self, filters: OrderFilter) -> List[Dict[str, Any]]:
        rows = self.db.execute(
            select(
                Order.delivery_status,
                func.count(Order.id),
                func.coalesce(func.sum(Order.total_amount), 0),
            )
            .where(*filters.clauses())
            .group_by(Order.delivery_status)
            .order_by(Order.delivery_status)
        ).all()
        return [{"status": status, "count": count, "revenue": _money(revenue)} for status, count, revenue in rows]

    def orders_by_day(self, filters: OrderFilter) -> List[Dict[str, Any]]:
        day = func.date(Order.created_at)
        rows = self.db.execute(
            select(day, func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0))
            .where(*filters.clauses())
            .group_by(day)
            .order_by(day)
        ).all()
        return [{"date": str(d), "count": count, "revenue": _money(revenue)} for d, count, revenue in rows]

    def top_products(self, filters: OrderFilter, limit: int = 5) -> List[Dict[str, Any]]:
        total_quantity = func.sum(OrderItem.quantity)
        rows = self.db.execute(
            select(
                OrderItem.product_id,
                func.max(OrderItem.name),
                total_quantity,
                func.sum(OrderItem.price * OrderItem.quantity),
            )
            .join(Order, OrderItem.order_id == Order.id)
            .where(*filters.clauses())
            .group_by(OrderItem.product_id)
            .order_by(desc(total_quantity), OrderItem.product_id)
            .limit(limit)
        ).all()
        return [
            {
                "product_id": product_id,
                "name": name,
                "total_quantity": int(quantity),
                "total_revenue": _money(revenue),
            }
            for product_id, name, quantity, revenue in rows
        ]


class CartRepository:
    def __init__(self, db: Session):
        self.db = db

    def clear(self, user_id: str) -> bool:
        cart = self.db.execute(select(Cart).where(Cart.user_id == user_id)).scalar_one_or_none()
        if cart is None:
            return False
        cart.items = []
        cart.total_price = Decimal("0")
        self.db.commit()
        return True
