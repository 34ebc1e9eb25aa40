"""
Inventory Ledger - conditional stock decrement and restore

All methods run inside the caller's transaction and never commit.
"""
import enum
from typing import Dict, Iterable, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from order_fulfillment.models.product import Product

logger = structlog.get_logger(__name__)


class ReservationResult(str, enum.Enum):
    """Outcome of a reservation attempt"""

    OK = "ok"
    INSUFFICIENT_STOCK = "insufficient_stock"
    PRODUCT_NOT_FOUND = "product_not_found"


class InventoryLedger:
    """Per-product available quantity"""

    def __init__(self, db: Session):
        self.db = db

    def get_products(self, product_ids: Iterable[int], refresh: bool = False) -> Dict[int, Product]:
        """
        Load products by ID

        Args:
            product_ids: Product IDs to load
            refresh: Overwrite any copies already in the session with the
                current row state

        Returns:
            Mapping of product ID to product; missing IDs are absent
        """
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        stmt = select(Product).where(Product.id.in_(ids))
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        return {product.id: product for product in self.db.scalars(stmt)}

    def available(self, product_id: int) -> Optional[int]:
        """Current available quantity, or None if the product does not exist"""
        return self.db.scalar(select(Product.quantity).where(Product.id == product_id))

    def reserve(self, product_id: int, quantity: int) -> ReservationResult:
        """
        Decrement stock if at least ``quantity`` is available

        A single ``UPDATE ... WHERE quantity >= :n`` so concurrent callers for
        the same product cannot both take the last units; zero rows affected
        means the reservation failed.
        """
        if quantity <= 0:
            raise ValueError(f"Reservation quantity must be positive, got {quantity}")

        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.quantity >= quantity)
            .values(quantity=Product.quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        if result.rowcount == 1:
            logger.debug("Stock reserved", product_id=product_id, quantity=quantity)
            return ReservationResult.OK

        if self.available(product_id) is None:
            return ReservationResult.PRODUCT_NOT_FOUND
        return ReservationResult.INSUFFICIENT_STOCK

    def restore(self, product_id: int, quantity: int) -> ReservationResult:
        """
        Return ``quantity`` units to stock unconditionally

        Callers guarantee this runs at most once per reservation.
        """
        if quantity <= 0:
            raise ValueError(f"Restore quantity must be positive, got {quantity}")

        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(quantity=Product.quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        if result.rowcount == 0:
            logger.warning("Stock restore skipped, product missing", product_id=product_id, quantity=quantity)
            return ReservationResult.PRODUCT_NOT_FOUND

        logger.debug("Stock restored", product_id=product_id, quantity=quantity)
        return ReservationResult.OK
