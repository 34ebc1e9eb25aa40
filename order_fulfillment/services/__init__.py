"""
Services package
"""
from order_fulfillment.services.checkout_service import CheckoutService
from order_fulfillment.services.transition_service import OrderTransitionService
from order_fulfillment.services.visibility_service import VisibilityService

__all__ = ["CheckoutService", "OrderTransitionService", "VisibilityService"]
