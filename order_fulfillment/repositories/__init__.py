"""
Repositories package
"""
from order_fulfillment.repositories.inventory_ledger import InventoryLedger, ReservationResult
from order_fulfillment.repositories.order_repository import OrderRepository

__all__ = ["InventoryLedger", "ReservationResult", "OrderRepository"]
