"""
Publishers package
"""
from order_fulfillment.publishers.event_publisher import EventPublisher

__all__ = ["EventPublisher"]
