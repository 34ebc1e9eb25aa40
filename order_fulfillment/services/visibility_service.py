"""
Visibility Service - role-scoped read access to orders

Every role view is a function of (status, distributor_id, per-line
retailer/farmer snapshot); there is no separate visibility state.
"""
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, List, Optional

from sqlalchemy.orm import Session

from order_fulfillment.models.order import OrderStatus
from order_fulfillment.repositories.order_repository import OrderRepository
from order_fulfillment.schemas.order import (
    DistributorOrderView,
    DistributorStatusFilter,
    FarmerOrderView,
    OrderLineResponse,
    OrderResponse,
    OrderStatusCounts,
    RetailerOrderView,
    ShipmentLine,
)
from order_fulfillment.services.errors import OrderNotFoundError

RETAILER_PENDING_STATUSES = frozenset({OrderStatus.PLACED, OrderStatus.CONFIRMED})

# Only statuses at or after PACKED; an order reaches these with a distributor set
DISTRIBUTOR_STATUS_FILTERS: Dict[DistributorStatusFilter, FrozenSet[OrderStatus]] = {
    DistributorStatusFilter.PACKED: frozenset({OrderStatus.PACKED}),
    DistributorStatusFilter.SHIPPED_OR_DELIVERED: frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED}),
    DistributorStatusFilter.ALL: frozenset({
        OrderStatus.PACKED, OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED,
    }),
}


def _subtotal(lines: List[OrderLineResponse]) -> Decimal:
    return sum((line.line_total for line in lines), Decimal("0")).quantize(Decimal("0.01"))


class VisibilityService:
    """Service layer for role-specific order views"""

    def __init__(self, db: Session):
        self.repository = OrderRepository(db)

    def get_order(self, order_id: int) -> OrderResponse:
        """Get a full order by ID"""
        order = self.repository.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return OrderResponse.model_validate(order)

    def orders_for_customer(self, customer_id: int) -> List[OrderResponse]:
        """All of a customer's orders in any status, newest first"""
        orders = self.repository.get_by_customer(customer_id)
        return [OrderResponse.model_validate(o) for o in orders]

    def pending_orders_for_retailer(self, retailer_id: int) -> List[RetailerOrderView]:
        """
        PLACED/CONFIRMED orders with at least one line from this retailer

        Each view carries only the retailer's own lines; the other retailers'
        lines appear as a count.
        """
        return self._retailer_views(retailer_id, RETAILER_PENDING_STATUSES)

    def orders_for_retailer(
        self, retailer_id: int, statuses: Optional[Iterable[OrderStatus]] = None
    ) -> List[RetailerOrderView]:
        """
        Order history of a retailer, newest first

        Same projection as the pending view; ``statuses`` of None means every
        status.
        """
        if statuses is not None:
            statuses = frozenset(OrderStatus(s) for s in statuses)
        return self._retailer_views(retailer_id, statuses)

    def _retailer_views(
        self, retailer_id: int, statuses: Optional[Iterable[OrderStatus]]
    ) -> List[RetailerOrderView]:
        orders = self.repository.get_containing_retailer(retailer_id, statuses)
        order_ids = [o.id for o in orders]
        own_lines = self.repository.get_lines(order_ids, retailer_id=retailer_id)
        other_counts = self.repository.count_other_lines(order_ids, retailer_id=retailer_id)

        views = []
        for order in orders:
            lines = [OrderLineResponse.model_validate(line) for line in own_lines[order.id]]
            views.append(RetailerOrderView(
                id=order.id,
                customer_id=order.customer_id,
                status=order.status,
                created_at=order.created_at,
                updated_at=order.updated_at,
                lines=lines,
                subtotal=_subtotal(lines),
                other_retailer_line_count=other_counts.get(order.id, 0),
            ))
        return views

    def orders_for_farmer(self, farmer_id: int) -> List[FarmerOrderView]:
        """Orders in any status containing this farmer's produce, own lines only"""
        orders = self.repository.get_containing_farmer(farmer_id)
        order_ids = [o.id for o in orders]
        own_lines = self.repository.get_lines(order_ids, farmer_id=farmer_id)
        other_counts = self.repository.count_other_lines(order_ids, farmer_id=farmer_id)

        views = []
        for order in orders:
            lines = [OrderLineResponse.model_validate(line) for line in own_lines[order.id]]
            views.append(FarmerOrderView(
                id=order.id,
                customer_id=order.customer_id,
                status=order.status,
                created_at=order.created_at,
                updated_at=order.updated_at,
                lines=lines,
                subtotal=_subtotal(lines),
                other_line_count=other_counts.get(order.id, 0),
            ))
        return views

    def assigned_orders_for_distributor(
        self,
        distributor_id: int,
        status_filter: DistributorStatusFilter = DistributorStatusFilter.ALL,
    ) -> List[DistributorOrderView]:
        """Orders packed for this distributor, matching the status filter"""
        statuses = DISTRIBUTOR_STATUS_FILTERS[DistributorStatusFilter(status_filter)]
        orders = self.repository.get_by_distributor(distributor_id, statuses)
        return [
            DistributorOrderView(
                id=order.id,
                customer_id=order.customer_id,
                status=order.status,
                distributor_id=order.distributor_id,
                created_at=order.created_at,
                updated_at=order.updated_at,
                lines=[ShipmentLine.model_validate(line) for line in order.lines],
                item_count=sum(line.quantity for line in order.lines),
            )
            for order in orders
        ]

    def orders_awaiting_packing(self) -> List[OrderResponse]:
        """Confirmed orders without a distributor, oldest first"""
        return [OrderResponse.model_validate(o) for o in self.repository.get_awaiting_packing()]

    def status_counts(self) -> OrderStatusCounts:
        counts = self.repository.count_by_status()
        return OrderStatusCounts(counts=counts, total=sum(counts.values()))
