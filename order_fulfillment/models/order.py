"""
SQLAlchemy Order and OrderLine models
"""
import enum
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Numeric, Enum, ForeignKey, CheckConstraint, Index, event, inspect
)
from sqlalchemy.orm import relationship

from order_fulfillment.database import Base, UTCDateTime, utcnow


class OrderStatus(str, enum.Enum):
    """Order lifecycle states"""

    PLACED = "PLACED"
    CONFIRMED = "CONFIRMED"
    PACKED = "PACKED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class Transition(str, enum.Enum):
    """Named lifecycle transitions"""

    CONFIRM = "confirm"
    PACK = "pack"
    SHIP = "ship"
    DELIVER = "deliver"
    CANCEL = "cancel"


class Order(Base):
    """Order header; lines are created with it in the same transaction"""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    customer_id = Column(Integer, nullable=False, index=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(
        Enum(OrderStatus, name="order_status", native_enum=False, create_constraint=True, length=20),
        nullable=False,
        default=OrderStatus.PLACED,
        index=True,
    )
    distributor_id = Column(Integer, nullable=True, index=True)
    created_at = Column(UTCDateTime(), default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime(), default=utcnow, nullable=False)

    lines = relationship(
        "OrderLine",
        back_populates="order",
        order_by="OrderLine.id",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint('total_amount >= 0', name='check_total_non_negative'),
    )

    def __repr__(self):
        return f"<Order(id={self.id}, customer_id={self.customer_id}, total={self.total_amount}, status='{self.status}')>"


class OrderLine(Base):
    """Order line with price, name and ownership frozen at checkout"""

    __tablename__ = "order_lines"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    product_name = Column(String(255), nullable=False)  # Denormalized for history
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    farmer_id = Column(Integer, nullable=False)
    retailer_id = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime(), default=utcnow, nullable=False)

    order = relationship("Order", back_populates="lines")

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_line_quantity_positive'),
        CheckConstraint('unit_price > 0', name='check_line_price_positive'),
        Index('ix_order_lines_retailer_order', 'retailer_id', 'order_id'),
        Index('ix_order_lines_farmer_order', 'farmer_id', 'order_id'),
    )

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.unit_price) * self.quantity

    def __repr__(self):
        return f"<OrderLine(id={self.id}, order_id={self.order_id}, product_id={self.product_id}, quantity={self.quantity})>"


FROZEN_ORDER_FIELDS = ("customer_id", "total_amount", "created_at")


@event.listens_for(OrderLine, "before_update")
def _reject_line_update(mapper, connection, target):
    raise ValueError(f"Order line {target.id} is immutable once written")


@event.listens_for(Order, "before_update")
def _reject_frozen_order_fields(mapper, connection, target):
    state = inspect(target)
    for field in FROZEN_ORDER_FIELDS:
        if state.attrs[field].history.has_changes():
            raise ValueError(f"Order.{field} cannot change after creation")
