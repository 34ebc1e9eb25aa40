"""
API routers
"""
from order_fulfillment.api import health, orders

__all__ = ["health", "orders"]
