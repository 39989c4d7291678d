"""
Catalog access used by the order engine.

Stock counters are the only shared mutable state touched by checkouts, so
every change to them is a single conditional UPDATE committed on its own.
Stock is never read and then written back.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from order_engine.domain.models import Product
from shared.core import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProductSnapshot:
    """Product fields captured right after a successful reservation."""
    product_id: int
    name: str
    price: Decimal
    discount: Decimal
    image: Optional[str]
    stock: int


class CatalogRepository:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def find_by_id(self, product_id: int) -> Optional[Product]:
        with self._session_factory() as session:
            return session.get(Product, product_id)

    def find_many(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        ids = list(set(product_ids))
        if not ids:
            return {}
        with self._session_factory() as session:
            products = session.execute(select(Product).where(Product.id.in_(ids))).scalars().all()
            return {p.id: p for p in products}

    def conditional_decrement_stock(self, product_id: int, quantity: int) -> Optional[ProductSnapshot]:
        """Take ``quantity`` units if at least that many are left and the product is active.

        Returns the post-decrement snapshot, or None when nothing matched.
        """
        stmt = (
            update(Product)
            .where(
                Product.id == product_id,
                Product.stock >= quantity,
                Product.is_active.is_(True),
            )
            .values(stock=Product.stock - quantity)
            .returning(Product.id, Product.name, Product.price, Product.discount, Product.images, Product.stock)
            .execution_options(synchronize_session=False)
        )
        with self._session_factory() as session, session.begin():
            row = session.execute(stmt).first()
        if row is None:
            return None
        images = row.images or []
        return ProductSnapshot(
            product_id=row.id,
            name=row.name,
            price=Decimal(row.price),
            discount=Decimal(row.discount or 0),
            image=images[0] if images else None,
            stock=row.stock,
        )

    def increment_stock(self, product_id: int, quantity: int) -> Optional[int]:
        """Give ``quantity`` units back. Returns the new stock, or None if the product is gone."""
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + quantity)
            .returning(Product.stock)
            .execution_options(synchronize_session=False)
        )
        with self._session_factory() as session, session.begin():
            new_stock = session.execute(stmt).scalar_one_or_none()
        if new_stock is not None:
            logger.info(f"Restored {quantity} unit(s) of product {product_id}, stock now {new_stock}")
        return new_stock
