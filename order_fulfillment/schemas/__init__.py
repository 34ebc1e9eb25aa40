"""
Schemas package
"""
from order_fulfillment.schemas.order import (
    CartLine,
    CheckoutRequest,
    Transition,
    OrderTransitionRequest,
    DistributorStatusFilter,
    OrderLineResponse,
    OrderResponse,
    RetailerOrderView,
    FarmerOrderView,
    ShipmentLine,
    DistributorOrderView,
    OrderStatusCounts,
    ErrorDetail,
    ErrorResponse
)

__all__ = [
    "CartLine",
    "CheckoutRequest",
    "Transition",
    "OrderTransitionRequest",
    "DistributorStatusFilter",
    "OrderLineResponse",
    "OrderResponse",
    "RetailerOrderView",
    "FarmerOrderView",
    "ShipmentLine",
    "DistributorOrderView",
    "OrderStatusCounts",
    "ErrorDetail",
    "ErrorResponse"
]
