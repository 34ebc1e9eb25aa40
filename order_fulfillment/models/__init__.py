"""
Models package
"""
from order_fulfillment.models.order import Order, OrderLine, OrderStatus, Transition
from order_fulfillment.models.product import Product

__all__ = ["Order", "OrderLine", "OrderStatus", "Transition", "Product"]
