"""
Order Transition Service - applies lifecycle transitions transactionally
"""
from operator import attrgetter
from typing import Optional, Tuple

import structlog
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from order_fulfillment.database import apply_lock_timeout, is_lock_timeout, utcnow
from order_fulfillment.models.order import OrderStatus, Transition
from order_fulfillment.publishers.event_publisher import EventPublisher
from order_fulfillment.repositories.inventory_ledger import InventoryLedger
from order_fulfillment.repositories.order_repository import OrderRepository
from order_fulfillment.schemas.order import OrderResponse
from order_fulfillment.services.errors import (
    FulfillmentError,
    IllegalTransitionError,
    LockTimeoutError,
    OrderNotFoundError,
)
from order_fulfillment.services.lifecycle import next_status, validate_assignment
from order_fulfillment.services.metrics import TRANSITIONS

logger = structlog.get_logger(__name__)


class OrderTransitionService:
    """Moves orders through the lifecycle, one serialized transition at a time"""

    def __init__(self, db: Session, event_publisher: Optional[EventPublisher] = None):
        self.db = db
        self.orders = OrderRepository(db)
        self.ledger = InventoryLedger(db)
        self.event_publisher = event_publisher or EventPublisher()

    def confirm(self, order_id: int) -> OrderResponse:
        return self.apply(order_id, Transition.CONFIRM)

    def pack(self, order_id: int, distributor_id: Optional[int]) -> OrderResponse:
        return self.apply(order_id, Transition.PACK, distributor_id=distributor_id)

    def ship(self, order_id: int) -> OrderResponse:
        return self.apply(order_id, Transition.SHIP)

    def deliver(self, order_id: int) -> OrderResponse:
        return self.apply(order_id, Transition.DELIVER)

    def cancel(self, order_id: int) -> OrderResponse:
        return self.apply(order_id, Transition.CANCEL)

    def apply(self, order_id: int, transition: Transition, distributor_id: Optional[int] = None) -> OrderResponse:
        """
        Apply a named transition to an order

        The order row is locked and its status moved with a compare-and-set
        update, so of two racing transitions only one can succeed. Cancel
        restores every line's stock in the same transaction.

        Raises:
            InvalidAssignmentError: Bad or misplaced distributor_id
            OrderNotFoundError: Unknown order
            IllegalTransitionError: No such edge from the current status
            LockTimeoutError: The order row could not be locked in time
        """
        transition = Transition(transition)
        log = logger.bind(order_id=order_id, transition=transition.value)
        try:
            validate_assignment(transition, distributor_id)
            response, previous = self._transition(order_id, transition, distributor_id)
            self.db.commit()
        except FulfillmentError as exc:
            self.db.rollback()
            TRANSITIONS.labels(transition=transition.value, outcome=exc.code).inc()
            log.info("Transition rejected", reason=exc.code, error=exc.message)
            raise
        except OperationalError as exc:
            self.db.rollback()
            if not is_lock_timeout(exc):
                TRANSITIONS.labels(transition=transition.value, outcome="error").inc()
                log.exception("Transition failed")
                raise
            TRANSITIONS.labels(transition=transition.value, outcome=LockTimeoutError.code).inc()
            log.warning("Transition timed out waiting for order lock", reason=LockTimeoutError.code)
            raise LockTimeoutError(transition.value) from exc
        except Exception:
            self.db.rollback()
            TRANSITIONS.labels(transition=transition.value, outcome="error").inc()
            log.exception("Transition failed")
            raise

        TRANSITIONS.labels(transition=transition.value, outcome="applied").inc()
        log.info(
            "Order status changed",
            old_status=previous.value,
            new_status=response.status.value,
            distributor_id=response.distributor_id,
        )

        self.event_publisher.publish_order_status_changed({
            "order_id": response.id,
            "transition": transition.value,
            "old_status": previous.value,
            "new_status": response.status.value,
            "distributor_id": response.distributor_id,
            "updated_at": response.updated_at.isoformat(),
        })
        return response

    def _transition(
        self, order_id: int, transition: Transition, distributor_id: Optional[int]
    ) -> Tuple[OrderResponse, OrderStatus]:
        apply_lock_timeout(self.db)

        order = self.orders.get_by_id(order_id, for_update=True)
        if order is None:
            raise OrderNotFoundError(order_id)

        current = OrderStatus(order.status)
        target = next_status(current, transition)

        assigned = distributor_id if transition is Transition.PACK else None
        if not self.orders.compare_and_set_status(order_id, current, target, utcnow(), distributor_id=assigned):
            raise IllegalTransitionError(self.orders.current_status(order_id), transition)

        if target is OrderStatus.CANCELLED:
            # Reached at most once per order: CANCELLED has no outgoing edges
            for line in sorted(order.lines, key=attrgetter("product_id")):
                self.ledger.restore(line.product_id, line.quantity)

        self.db.refresh(order)
        return OrderResponse.model_validate(order), current
