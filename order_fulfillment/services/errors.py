"""
Typed errors raised by the order fulfillment core

Every failure a caller can observe is one of these; the API layer maps
``code`` and the class to an HTTP status.
"""
from typing import Optional


class FulfillmentError(Exception):
    """Base exception for order fulfillment errors"""

    code = "fulfillment_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


# Input-shape errors: rejected before any transaction starts

class InvalidCartError(FulfillmentError):
    """Cart is malformed"""

    code = "invalid_cart"


class EmptyCartError(InvalidCartError):
    """Cart has no lines"""

    code = "empty_cart"

    def __init__(self):
        super().__init__("Cart cannot be empty")


class CartTooLargeError(InvalidCartError):
    """Cart exceeds the configured line limit"""

    code = "cart_too_large"

    def __init__(self, line_count: int, max_lines: int):
        super().__init__(f"Cart too large: {line_count} lines (max {max_lines})")
        self.line_count = line_count
        self.max_lines = max_lines


class InvalidQuantityError(InvalidCartError):
    """Requested quantity is not a positive integer"""

    code = "invalid_quantity"

    def __init__(self, product_id: int, quantity):
        super().__init__(f"Invalid quantity {quantity!r} for product {product_id}")
        self.product_id = product_id
        self.quantity = quantity


# Business-precondition failures: abort the whole checkout

class ProductNotFoundError(FulfillmentError):
    """Product not found"""

    code = "product_not_found"

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class InsufficientStockError(FulfillmentError):
    """Insufficient stock"""

    code = "insufficient_stock"

    def __init__(self, product_id: int, requested: int, available: Optional[int] = None):
        message = f"Insufficient stock for product {product_id}: requested {requested}"
        if available is not None:
            message += f", available {available}"
        super().__init__(message)
        self.product_id = product_id
        self.requested = requested
        self.available = available


class ProductNotOrderableError(FulfillmentError):
    """Product lacks a farmer, a retailer or a positive price"""

    code = "product_not_orderable"

    def __init__(self, product_id: int, reason: str):
        super().__init__(f"Product {product_id} cannot be ordered: {reason}")
        self.product_id = product_id
        self.reason = reason


# Workflow errors

class IllegalTransitionError(FulfillmentError):
    """Transition is not allowed from the order's current status"""

    code = "illegal_transition"

    def __init__(self, current_status, transition):
        current = getattr(current_status, "value", current_status)
        requested = getattr(transition, "value", transition)
        super().__init__(f"Cannot {requested} an order in status {current}")
        self.current_status = current_status
        self.transition = transition


class InvalidAssignmentError(FulfillmentError):
    """Distributor assignment is missing or supplied where it does not belong"""

    code = "invalid_assignment"


# Concurrency errors

class LockTimeoutError(FulfillmentError):
    """Locks could not be acquired within the configured bound"""

    code = "lock_timeout"

    def __init__(self, operation: str):
        super().__init__(f"Timed out waiting for locks during {operation}; nothing was changed")
        self.operation = operation


# Lookups

class OrderNotFoundError(FulfillmentError):
    """Order not found"""

    code = "order_not_found"

    def __init__(self, order_id: int):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id
