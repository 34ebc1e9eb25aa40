"""
Order API endpoints
"""
from typing import Dict, List, Optional, Type

from fastapi import APIRouter, Depends, HTTPException, Query, status

from order_fulfillment.api.dependencies import (
    Identity,
    Role,
    get_checkout_service,
    get_identity,
    get_transition_service,
    get_visibility_service,
    require_roles,
)
from order_fulfillment.models.order import OrderStatus, Transition
from order_fulfillment.schemas.order import (
    CheckoutRequest,
    DistributorOrderView,
    DistributorStatusFilter,
    ErrorResponse,
    FarmerOrderView,
    OrderResponse,
    OrderStatusCounts,
    OrderTransitionRequest,
    RetailerOrderView,
)
from order_fulfillment.services.checkout_service import CheckoutService
from order_fulfillment.services.errors import (
    FulfillmentError,
    IllegalTransitionError,
    InsufficientStockError,
    InvalidAssignmentError,
    InvalidCartError,
    LockTimeoutError,
    OrderNotFoundError,
    ProductNotFoundError,
    ProductNotOrderableError,
)
from order_fulfillment.services.transition_service import OrderTransitionService
from order_fulfillment.services.visibility_service import VisibilityService

router = APIRouter(prefix="/orders", tags=["orders"])

ERROR_STATUS: Dict[Type[FulfillmentError], int] = {
    InvalidCartError: status.HTTP_400_BAD_REQUEST,
    InvalidAssignmentError: status.HTTP_400_BAD_REQUEST,
    ProductNotFoundError: status.HTTP_404_NOT_FOUND,
    OrderNotFoundError: status.HTTP_404_NOT_FOUND,
    InsufficientStockError: status.HTTP_409_CONFLICT,
    ProductNotOrderableError: status.HTTP_409_CONFLICT,
    IllegalTransitionError: status.HTTP_409_CONFLICT,
    LockTimeoutError: status.HTTP_503_SERVICE_UNAVAILABLE,
}

TRANSITION_ROLES = {
    Transition.CONFIRM: {Role.RETAILER, Role.ADMIN},
    Transition.PACK: {Role.WAREHOUSE, Role.ADMIN},
    Transition.SHIP: {Role.DISTRIBUTOR, Role.ADMIN},
    Transition.DELIVER: {Role.DISTRIBUTOR, Role.ADMIN},
    Transition.CANCEL: {Role.CUSTOMER, Role.RETAILER, Role.WAREHOUSE, Role.ADMIN},
}


def error_responses(*status_codes: int) -> Dict[int, Dict]:
    """OpenAPI entries for the typed error body"""
    return {code: {"model": ErrorResponse} for code in status_codes}


def to_http_error(exc: FulfillmentError) -> HTTPException:
    """Map a typed error to its HTTP status, most specific class first"""
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return HTTPException(status_code=ERROR_STATUS[cls], detail=exc.to_dict())
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.to_dict())


def forbidden(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"code": "forbidden", "message": message}
    )


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Checkout",
    responses=error_responses(400, 401, 403, 404, 409, 503),
)
def checkout(
    request: CheckoutRequest,
    identity: Identity = Depends(require_roles(Role.CUSTOMER)),
    service: CheckoutService = Depends(get_checkout_service)
):
    """
    Create an order from the caller's cart

    The order belongs to the authenticated customer; the body carries only
    the cart lines.

    - **items**: list of `{product_id, quantity}` (1..100 lines)
    """
    try:
        return service.checkout(identity.user_id, request.items)
    except FulfillmentError as e:
        raise to_http_error(e)


@router.get("/mine", response_model=List[OrderResponse], summary="Get my orders")
def get_my_orders(
    identity: Identity = Depends(require_roles(Role.CUSTOMER)),
    service: VisibilityService = Depends(get_visibility_service)
):
    """All orders placed by the caller, newest first"""
    return service.orders_for_customer(identity.user_id)


@router.get("/retailer/pending", response_model=List[RetailerOrderView], summary="Get orders to fulfill")
def get_pending_retailer_orders(
    identity: Identity = Depends(require_roles(Role.RETAILER)),
    service: VisibilityService = Depends(get_visibility_service)
):
    """
    PLACED and CONFIRMED orders containing the caller's products

    Only the caller's own lines are included.
    """
    return service.pending_orders_for_retailer(identity.user_id)


@router.get("/retailer", response_model=List[RetailerOrderView], summary="Get my order history")
def get_retailer_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status", description="Only orders in this status"),
    identity: Identity = Depends(require_roles(Role.RETAILER)),
    service: VisibilityService = Depends(get_visibility_service)
):
    """Orders in any status containing the caller's products, own lines only"""
    statuses = None if status_filter is None else [status_filter]
    return service.orders_for_retailer(identity.user_id, statuses)


@router.get("/farmer", response_model=List[FarmerOrderView], summary="Get orders for my produce")
def get_farmer_orders(
    identity: Identity = Depends(require_roles(Role.FARMER)),
    service: VisibilityService = Depends(get_visibility_service)
):
    """Orders in any status containing the caller's produce, own lines only"""
    return service.orders_for_farmer(identity.user_id)


@router.get("/distributor", response_model=List[DistributorOrderView], summary="Get assigned orders")
def get_distributor_orders(
    status_filter: DistributorStatusFilter = Query(
        DistributorStatusFilter.ALL, alias="status", description="PACKED, SHIPPED_OR_DELIVERED or ALL"
    ),
    identity: Identity = Depends(require_roles(Role.DISTRIBUTOR)),
    service: VisibilityService = Depends(get_visibility_service)
):
    """Orders packed for the caller"""
    return service.assigned_orders_for_distributor(identity.user_id, status_filter)


@router.get("/awaiting-packing", response_model=List[OrderResponse], summary="Get orders to pack")
def get_orders_awaiting_packing(
    identity: Identity = Depends(require_roles(Role.WAREHOUSE, Role.ADMIN)),
    service: VisibilityService = Depends(get_visibility_service)
):
    """Confirmed orders with no distributor yet, oldest first"""
    return service.orders_awaiting_packing()


@router.get("/stats", response_model=OrderStatusCounts, summary="Get order counts by status")
def get_order_stats(
    identity: Identity = Depends(require_roles(Role.WAREHOUSE, Role.ADMIN)),
    service: VisibilityService = Depends(get_visibility_service)
):
    return service.status_counts()


@router.get(
    "/{order_id}", response_model=OrderResponse, summary="Get order by ID", responses=error_responses(401, 403, 404)
)
def get_order(
    order_id: int,
    identity: Identity = Depends(require_roles(Role.CUSTOMER, Role.WAREHOUSE, Role.ADMIN)),
    service: VisibilityService = Depends(get_visibility_service)
):
    """
    Retrieve a specific order by ID

    - **order_id**: Order ID
    """
    try:
        order = service.get_order(order_id)
    except FulfillmentError as e:
        raise to_http_error(e)
    if identity.role is Role.CUSTOMER and order.customer_id != identity.user_id:
        raise forbidden("Cannot view someone else's order")
    return order


@router.patch(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Apply a lifecycle transition",
    responses=error_responses(400, 401, 403, 404, 409, 503),
)
def transition_order(
    order_id: int,
    request: OrderTransitionRequest,
    identity: Identity = Depends(get_identity),
    visibility: VisibilityService = Depends(get_visibility_service),
    service: OrderTransitionService = Depends(get_transition_service)
):
    """
    Move an order through its lifecycle

    - **transition**: confirm, pack, ship, deliver or cancel
    - **distributor_id**: required for pack, rejected otherwise
    """
    if identity.role not in TRANSITION_ROLES[request.transition]:
        raise forbidden(f"Role {identity.role.value} cannot {request.transition.value} orders")

    try:
        order = visibility.get_order(order_id)
        _check_ownership(identity, order, request.transition)
        return service.apply(order_id, request.transition, distributor_id=request.distributor_id)
    except FulfillmentError as e:
        raise to_http_error(e)


def _check_ownership(identity: Identity, order: OrderResponse, transition: Transition) -> None:
    if identity.role is Role.CUSTOMER and order.customer_id != identity.user_id:
        raise forbidden("Cannot change someone else's order")
    if identity.role is Role.RETAILER and not any(line.retailer_id == identity.user_id for line in order.lines):
        raise forbidden(f"Cannot {transition.value} an order with none of your products")
    if identity.role is Role.DISTRIBUTOR and order.distributor_id != identity.user_id:
        raise forbidden(f"Cannot {transition.value} an order assigned to another distributor")
