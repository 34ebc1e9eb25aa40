"""
Pydantic schemas for request/response validation
"""
import enum
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from order_fulfillment.models.order import OrderStatus, Transition


class CartLine(BaseModel):
    """A requested (product, quantity) pair"""
    product_id: int = Field(..., gt=0, description="Product ID")
    quantity: int = Field(..., description="Quantity to order")


class CheckoutRequest(BaseModel):
    """Schema for checking out a cart"""
    items: List[CartLine] = Field(..., description="Cart lines, in the customer's order")


class OrderTransitionRequest(BaseModel):
    """Schema for moving an order through its lifecycle"""
    transition: Transition = Field(..., description="Transition to apply")
    distributor_id: Optional[int] = Field(None, description="Distributor to assign (pack only)")


class DistributorStatusFilter(str, enum.Enum):
    """Status filter for the distributor view"""
    PACKED = "PACKED"
    SHIPPED_OR_DELIVERED = "SHIPPED_OR_DELIVERED"
    ALL = "ALL"


class OrderLineResponse(BaseModel):
    """Schema for an order line with its frozen snapshot"""
    id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    farmer_id: int
    retailer_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    """Schema for order response"""
    id: int
    customer_id: int
    total_amount: Decimal
    status: OrderStatus
    distributor_id: Optional[int]
    created_at: datetime
    updated_at: datetime
    lines: List[OrderLineResponse]

    model_config = ConfigDict(from_attributes=True)


class RetailerOrderView(BaseModel):
    """An order as one retailer sees it: only its own lines"""
    id: int
    customer_id: int
    status: OrderStatus
    created_at: datetime
    updated_at: datetime
    lines: List[OrderLineResponse]
    subtotal: Decimal
    other_retailer_line_count: int


class FarmerOrderView(BaseModel):
    """An order as one farmer sees it: only lines of its produce"""
    id: int
    customer_id: int
    status: OrderStatus
    created_at: datetime
    updated_at: datetime
    lines: List[OrderLineResponse]
    subtotal: Decimal
    other_line_count: int


class ShipmentLine(BaseModel):
    """What a distributor needs to move a line; no prices"""
    product_id: int
    product_name: str
    quantity: int
    retailer_id: int

    model_config = ConfigDict(from_attributes=True)


class DistributorOrderView(BaseModel):
    """An order assigned to a distributor"""
    id: int
    customer_id: int
    status: OrderStatus
    distributor_id: int
    created_at: datetime
    updated_at: datetime
    lines: List[ShipmentLine]
    item_count: int


class OrderStatusCounts(BaseModel):
    """Schema for per-status order counts"""
    counts: Dict[OrderStatus, int]
    total: int


class ErrorDetail(BaseModel):
    """Schema for typed error bodies"""
    code: str
    message: str


class ErrorResponse(BaseModel):
    """Schema for error responses, as rendered by HTTPException"""
    detail: ErrorDetail
