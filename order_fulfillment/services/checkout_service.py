"""
Checkout Service - turns a cart into an order in one transaction
"""
from decimal import Decimal
from operator import attrgetter
from typing import List, Optional, Sequence

import structlog
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from order_fulfillment.config import settings
from order_fulfillment.database import apply_lock_timeout, is_lock_timeout
from order_fulfillment.models.order import OrderLine
from order_fulfillment.models.product import Product
from order_fulfillment.publishers.event_publisher import EventPublisher
from order_fulfillment.repositories.inventory_ledger import InventoryLedger, ReservationResult
from order_fulfillment.repositories.order_repository import OrderRepository
from order_fulfillment.schemas.order import CartLine, OrderResponse
from order_fulfillment.services.errors import (
    CartTooLargeError,
    EmptyCartError,
    FulfillmentError,
    InsufficientStockError,
    InvalidCartError,
    InvalidQuantityError,
    LockTimeoutError,
    ProductNotFoundError,
    ProductNotOrderableError,
)
from order_fulfillment.services.metrics import CHECKOUTS

logger = structlog.get_logger(__name__)


class CheckoutService:
    """Coordinates cart validation, stock reservation and order creation"""

    def __init__(self, db: Session, event_publisher: Optional[EventPublisher] = None, max_lines: Optional[int] = None):
        self.db = db
        self.orders = OrderRepository(db)
        self.ledger = InventoryLedger(db)
        self.event_publisher = event_publisher or EventPublisher()
        self.max_lines = settings.MAX_CART_LINES if max_lines is None else max_lines

    def validate_cart(self, cart_lines: Sequence[CartLine]) -> List[CartLine]:
        """
        Reject malformed carts before any transaction starts

        Raises:
            EmptyCartError, CartTooLargeError, InvalidQuantityError
        """
        lines = list(cart_lines or [])
        if not lines:
            raise EmptyCartError()
        if len(lines) > self.max_lines:
            raise CartTooLargeError(len(lines), self.max_lines)
        for line in lines:
            quantity = line.quantity
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise InvalidQuantityError(line.product_id, quantity)
        return lines

    def checkout(self, customer_id: int, cart_lines: Sequence[CartLine]) -> OrderResponse:
        """
        Create an order from a customer's cart

        Steps (one transaction):
        1. Load every product in the cart
        2. Validate farmer/retailer association and price
        3. Reserve stock, ascending by product ID
        4. Freeze unit prices from the locked rows and compute the total
        5. Create the order and its lines
        6. Commit, then publish OrderPlaced

        Args:
            customer_id: Resolved identity of the customer, never taken from
                request input
            cart_lines: Requested (product, quantity) pairs

        Returns:
            The created order

        Raises:
            InvalidCartError: Empty cart, too many lines or bad quantity
            ProductNotFoundError: A cart line names an unknown product
            ProductNotOrderableError: A product lacks farmer, retailer or price
            InsufficientStockError: A reservation failed
            LockTimeoutError: Stock locks were not acquired in time
        """
        log = logger.bind(customer_id=customer_id)
        try:
            lines = self.validate_cart(cart_lines)
        except InvalidCartError as exc:
            CHECKOUTS.labels(outcome=exc.code).inc()
            log.info("Checkout rejected", reason=exc.code, error=exc.message)
            raise

        log = log.bind(line_count=len(lines))
        try:
            order = self._place_order(customer_id, lines)
            response = OrderResponse.model_validate(order)
            self.db.commit()
        except FulfillmentError as exc:
            self.db.rollback()
            CHECKOUTS.labels(outcome=exc.code).inc()
            log.info("Checkout rejected", reason=exc.code, error=exc.message)
            raise
        except OperationalError as exc:
            self.db.rollback()
            if not is_lock_timeout(exc):
                CHECKOUTS.labels(outcome="error").inc()
                log.exception("Checkout failed")
                raise
            CHECKOUTS.labels(outcome=LockTimeoutError.code).inc()
            log.warning("Checkout timed out waiting for stock locks", reason=LockTimeoutError.code)
            raise LockTimeoutError("checkout") from exc
        except Exception:
            self.db.rollback()
            CHECKOUTS.labels(outcome="error").inc()
            log.exception("Checkout failed")
            raise

        CHECKOUTS.labels(outcome="placed").inc()
        log.info("Order placed", order_id=response.id, total_amount=str(response.total_amount))

        self.event_publisher.publish_order_placed({
            "order_id": response.id,
            "customer_id": response.customer_id,
            "total_amount": str(response.total_amount),
            "status": response.status.value,
            "lines": [
                {"product_id": line.product_id, "quantity": line.quantity, "retailer_id": line.retailer_id}
                for line in response.lines
            ],
        })
        return response

    def _place_order(self, customer_id: int, lines: List[CartLine]):
        apply_lock_timeout(self.db)

        # Step 1-2: every product must exist and be orderable
        products = self.ledger.get_products(line.product_id for line in lines)
        for line in lines:
            product = products.get(line.product_id)
            if product is None:
                raise ProductNotFoundError(line.product_id)
            self._ensure_orderable(product)

        # Step 3: fixed order so concurrent checkouts cannot deadlock
        for line in sorted(lines, key=attrgetter("product_id")):
            result = self.ledger.reserve(line.product_id, line.quantity)
            if result is ReservationResult.PRODUCT_NOT_FOUND:
                raise ProductNotFoundError(line.product_id)
            if result is ReservationResult.INSUFFICIENT_STOCK:
                raise InsufficientStockError(line.product_id, line.quantity, self.ledger.available(line.product_id))

        # Step 4: rows are locked by this transaction, read what is being sold
        locked = self.ledger.get_products(products.keys(), refresh=True)
        order_lines = []
        for line in lines:
            product = locked[line.product_id]
            self._ensure_orderable(product)
            order_lines.append(OrderLine(
                product_id=product.id,
                product_name=product.name,
                quantity=line.quantity,
                unit_price=Decimal(product.price),
                farmer_id=product.farmer_id,
                retailer_id=product.retailer_id,
            ))

        # Step 5
        return self.orders.create(customer_id, order_lines)

    @staticmethod
    def _ensure_orderable(product: Product) -> None:
        if product.farmer_id is None:
            raise ProductNotOrderableError(product.id, "missing farmer association")
        if product.retailer_id is None:
            raise ProductNotOrderableError(product.id, "missing retailer association")
        if product.price is None or Decimal(product.price) <= 0:
            raise ProductNotOrderableError(product.id, "price must be positive")
