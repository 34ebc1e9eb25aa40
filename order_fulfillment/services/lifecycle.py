"""
Order lifecycle state machine

PLACED -> CONFIRMED -> PACKED -> SHIPPED -> DELIVERED, with CANCELLED
reachable from every state except DELIVERED. DELIVERED and CANCELLED are
terminal.
"""
from typing import Dict, FrozenSet, NamedTuple, Optional

from order_fulfillment.models.order import OrderStatus, Transition
from order_fulfillment.services.errors import IllegalTransitionError, InvalidAssignmentError


class Edge(NamedTuple):
    allowed_from: FrozenSet[OrderStatus]
    target: OrderStatus


TRANSITIONS: Dict[Transition, Edge] = {
    Transition.CONFIRM: Edge(frozenset({OrderStatus.PLACED}), OrderStatus.CONFIRMED),
    Transition.PACK: Edge(frozenset({OrderStatus.CONFIRMED}), OrderStatus.PACKED),
    Transition.SHIP: Edge(frozenset({OrderStatus.PACKED}), OrderStatus.SHIPPED),
    Transition.DELIVER: Edge(frozenset({OrderStatus.SHIPPED}), OrderStatus.DELIVERED),
    Transition.CANCEL: Edge(
        frozenset({OrderStatus.PLACED, OrderStatus.CONFIRMED, OrderStatus.PACKED, OrderStatus.SHIPPED}),
        OrderStatus.CANCELLED,
    ),
}

TERMINAL_STATUSES = frozenset(
    status for status in OrderStatus
    if not any(status in edge.allowed_from for edge in TRANSITIONS.values())
)


def next_status(current: OrderStatus, transition: Transition) -> OrderStatus:
    """
    Resolve the status ``transition`` leads to from ``current``

    Raises:
        IllegalTransitionError: If the table has no such edge
    """
    edge = TRANSITIONS[Transition(transition)]
    if current not in edge.allowed_from:
        raise IllegalTransitionError(current, transition)
    return edge.target


def allowed_transitions(current: OrderStatus) -> FrozenSet[Transition]:
    """Transitions that may be applied to an order in ``current``"""
    return frozenset(name for name, edge in TRANSITIONS.items() if current in edge.allowed_from)


def validate_assignment(transition: Transition, distributor_id: Optional[int]) -> None:
    """
    A distributor is assigned by ``pack`` and only by ``pack``

    Raises:
        InvalidAssignmentError: If pack lacks a valid distributor, or another
            transition carries one
    """
    if Transition(transition) is Transition.PACK:
        if distributor_id is None or distributor_id <= 0:
            raise InvalidAssignmentError("pack requires a valid distributor_id")
    elif distributor_id is not None:
        raise InvalidAssignmentError(f"distributor_id is only accepted by pack, not {Transition(transition).value}")
