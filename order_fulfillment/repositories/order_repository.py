"""
Order Repository - Data Access Layer

Writes happen inside the caller's transaction; nothing here commits.
"""
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import desc, func, select, update, exists, and_
from sqlalchemy.orm import Session, lazyload

from order_fulfillment.database import utcnow
from order_fulfillment.models.order import Order, OrderLine, OrderStatus


class OrderRepository:
    """Repository for Order and OrderLine rows"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, customer_id: int, lines: List[OrderLine]) -> Order:
        """
        Create an order together with its lines

        Args:
            customer_id: Resolved customer identity
            lines: Unsaved lines carrying their frozen snapshot

        Returns:
            Flushed order with IDs assigned
        """
        now = utcnow()
        total = sum((line.line_total for line in lines), Decimal("0"))
        order = Order(
            customer_id=customer_id,
            total_amount=total.quantize(Decimal("0.01")),
            status=OrderStatus.PLACED,
            distributor_id=None,
            created_at=now,
            updated_at=now,
        )
        for line in lines:
            line.created_at = now
        order.lines = lines
        self.db.add(order)
        self.db.flush()
        return order

    def get_by_id(self, order_id: int, for_update: bool = False) -> Optional[Order]:
        """Get order by ID, optionally locking its row"""
        stmt = select(Order).where(Order.id == order_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.scalars(stmt).first()

    def current_status(self, order_id: int) -> Optional[OrderStatus]:
        return self.db.scalar(select(Order.status).where(Order.id == order_id))

    def compare_and_set_status(
        self,
        order_id: int,
        expected: OrderStatus,
        new_status: OrderStatus,
        updated_at: datetime,
        distributor_id: Optional[int] = None,
    ) -> bool:
        """
        Move an order from ``expected`` to ``new_status``

        Returns False when the order is no longer in ``expected``.
        """
        values = {"status": new_status, "updated_at": updated_at}
        if distributor_id is not None:
            values["distributor_id"] = distributor_id
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    def get_by_customer(self, customer_id: int) -> List[Order]:
        """Get a customer's orders, newest first"""
        stmt = (
            select(Order)
            .where(Order.customer_id == customer_id)
            .order_by(desc(Order.created_at), desc(Order.id))
        )
        return list(self.db.scalars(stmt))

    def get_containing_retailer(
        self, retailer_id: int, statuses: Optional[Iterable[OrderStatus]] = None
    ) -> List[Order]:
        """
        Orders with at least one line sold by ``retailer_id``

        Headers only; lines are not loaded so none leak into the result.
        ``statuses`` of None means every status.
        """
        has_line = exists().where(and_(OrderLine.order_id == Order.id, OrderLine.retailer_id == retailer_id))
        stmt = select(Order).options(lazyload(Order.lines)).where(has_line)
        if statuses is not None:
            stmt = stmt.where(Order.status.in_(list(statuses)))
        stmt = stmt.order_by(desc(Order.created_at), desc(Order.id))
        return list(self.db.scalars(stmt))

    def get_containing_farmer(self, farmer_id: int) -> List[Order]:
        """Orders with at least one line grown by ``farmer_id``, headers only"""
        has_line = exists().where(and_(OrderLine.order_id == Order.id, OrderLine.farmer_id == farmer_id))
        stmt = (
            select(Order)
            .options(lazyload(Order.lines))
            .where(has_line)
            .order_by(desc(Order.created_at), desc(Order.id))
        )
        return list(self.db.scalars(stmt))

    def get_lines(
        self,
        order_ids: Iterable[int],
        retailer_id: Optional[int] = None,
        farmer_id: Optional[int] = None,
    ) -> Dict[int, List[OrderLine]]:
        """Lines of the given orders, optionally only one party's, keyed by order ID"""
        ids = list(order_ids)
        grouped: Dict[int, List[OrderLine]] = defaultdict(list)
        if not ids:
            return grouped
        stmt = select(OrderLine).where(OrderLine.order_id.in_(ids))
        if retailer_id is not None:
            stmt = stmt.where(OrderLine.retailer_id == retailer_id)
        if farmer_id is not None:
            stmt = stmt.where(OrderLine.farmer_id == farmer_id)
        for line in self.db.scalars(stmt.order_by(OrderLine.id)):
            grouped[line.order_id].append(line)
        return grouped

    def count_other_lines(
        self,
        order_ids: Iterable[int],
        retailer_id: Optional[int] = None,
        farmer_id: Optional[int] = None,
    ) -> Dict[int, int]:
        """Per order, how many lines belong to someone other than the given party"""
        ids = list(order_ids)
        if not ids:
            return {}
        stmt = select(OrderLine.order_id, func.count(OrderLine.id)).where(OrderLine.order_id.in_(ids))
        if retailer_id is not None:
            stmt = stmt.where(OrderLine.retailer_id != retailer_id)
        if farmer_id is not None:
            stmt = stmt.where(OrderLine.farmer_id != farmer_id)
        stmt = stmt.group_by(OrderLine.order_id)
        return {order_id: count for order_id, count in self.db.execute(stmt)}

    def get_by_distributor(self, distributor_id: int, statuses: Iterable[OrderStatus]) -> List[Order]:
        """Orders assigned to ``distributor_id`` in one of ``statuses``"""
        stmt = (
            select(Order)
            .where(
                Order.distributor_id.is_not(None),
                Order.distributor_id == distributor_id,
                Order.status.in_(list(statuses)),
            )
            .order_by(desc(Order.updated_at), desc(Order.id))
        )
        return list(self.db.scalars(stmt))

    def get_awaiting_packing(self) -> List[Order]:
        """Confirmed, unassigned orders, oldest first"""
        stmt = (
            select(Order)
            .where(Order.status == OrderStatus.CONFIRMED, Order.distributor_id.is_(None))
            .order_by(Order.created_at, Order.id)
        )
        return list(self.db.scalars(stmt))

    def count_by_status(self) -> Dict[OrderStatus, int]:
        """Get count of orders per status"""
        stmt = select(Order.status, func.count(Order.id)).group_by(Order.status)
        counts = {status: 0 for status in OrderStatus}
        for status, count in self.db.execute(stmt):
            counts[OrderStatus(status)] = count
        return counts
