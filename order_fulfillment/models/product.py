"""
SQLAlchemy Product model

The products table is owned by the catalog service; this service reads it
and, through the inventory ledger, adjusts ``quantity``.
"""
from sqlalchemy import Column, Integer, String, Numeric, CheckConstraint

from order_fulfillment.database import Base, UTCDateTime, utcnow


class Product(Base):
    """Product database model"""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    farmer_id = Column(Integer, nullable=True, index=True)
    retailer_id = Column(Integer, nullable=True, index=True)
    created_at = Column(UTCDateTime(), default=utcnow, nullable=False)

    # Constraints
    __table_args__ = (
        CheckConstraint('price >= 0', name='check_price_non_negative'),
        CheckConstraint('quantity >= 0', name='check_quantity_non_negative'),
    )

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', price={self.price}, quantity={self.quantity})>"
