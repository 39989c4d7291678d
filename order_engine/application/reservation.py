"""
Stock reservation for a single checkout attempt.

A reservation is one atomic conditional decrement in the catalog. Nothing
spans several products: if a later step fails, everything reserved so far
is given back through compensating increments.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from order_engine.domain.errors import (
    InsufficientStockError,
    ProductNotFoundError,
    ReservationFailedError,
)
from order_engine.infrastructure.catalog import CatalogRepository, ProductSnapshot
from shared.core import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReservedLine:
    product_id: int
    quantity: int
    snapshot: ProductSnapshot


@dataclass
class ReservationRecord:
    """In-memory list of what one checkout attempt has reserved. Never persisted."""
    entries: List[Dict[str, int]] = field(default_factory=list)

    def add(self, product_id: int, quantity: int) -> None:
        self.entries.append({"product_id": product_id, "quantity": quantity})

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class CompensationResult:
    """Outcome of giving stock back for one product."""
    product_id: int
    quantity: int
    success: bool
    new_stock: Optional[int] = None
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"productId": self.product_id, "quantityRestored": self.quantity, "newStock": self.new_stock}
        return {"productId": self.product_id, "quantity": self.quantity, "error": self.error}


class StockReservation:
    def __init__(self, catalog: CatalogRepository, max_workers: int = 8):
        self.catalog = catalog
        self.max_workers = max_workers

    def reserve(self, product_id: int, quantity: int, record: ReservationRecord) -> ReservedLine:
        snapshot = self.catalog.conditional_decrement_stock(product_id, quantity)
        if snapshot is None:
            # Classify the miss; the stock read here is only used for the message
            product = self.catalog.find_by_id(product_id)
            if product is None or not product.is_active:
                raise ProductNotFoundError(product_id)
            if product.stock < quantity:
                raise InsufficientStockError(product_id, product.name, product.stock, quantity)
            raise ReservationFailedError(product_id, product.name)

        record.add(product_id, quantity)
        logger.info(f"Reserved {quantity} unit(s) of product {product_id}, stock now {snapshot.stock}")
        return ReservedLine(product_id=product_id, quantity=quantity, snapshot=snapshot)

    def rollback(self, record: ReservationRecord) -> List[CompensationResult]:
        """Give back everything in ``record``. Never raises."""
        if not record.entries:
            return []
        logger.warning(f"Rolling back {len(record)} stock reservation(s) for failed order")
        results = self.restore(record.entries)
        failed = [r for r in results if not r.success]
        if failed:
            logger.critical(
                f"Critical: {len(failed)} stock rollbacks failed. Manual intervention required.",
                extra={'extra_fields': {'failed_rollbacks': [r.as_dict() for r in failed]}},
            )
        return results

    def restore(self, entries: Iterable[Dict[str, int]]) -> List[CompensationResult]:
        """Issue one compensating increment per entry concurrently.

        Each increment is independent; one failing does not stop the others.
        Results keep the order of ``entries``.
        """
        entries = list(entries)
        if not entries:
            return []
        workers = max(1, min(self.max_workers, len(entries)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="stock-restore") as pool:
            futures = [
                pool.submit(self._compensate, entry["product_id"], entry["quantity"])
                for entry in entries
            ]
            return [f.result() for f in futures]

    def _compensate(self, product_id: int, quantity: int) -> CompensationResult:
        try:
            new_stock = self.catalog.increment_stock(product_id, quantity)
        except Exception as e:
            logger.critical(
                f"Stock compensation error for product {product_id}: {e}",
                exc_info=True,
                extra={'extra_fields': {'product_id': product_id, 'quantity': quantity}},
            )
            return CompensationResult(product_id, quantity, success=False, error=str(e))
        if new_stock is None:
            logger.critical(
                f"Failed to restore stock for product: {product_id}",
                extra={'extra_fields': {'product_id': product_id, 'quantity': quantity}},
            )
            return CompensationResult(product_id, quantity, success=False, error="Product not found")
        return CompensationResult(product_id, quantity, success=True, new_stock=new_stock)
