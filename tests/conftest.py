"""Pytest fixtures for order fulfillment tests."""

import os
import tempfile

# Settings are read at import time; point them at a scratch SQLite database
# before anything from the package is imported.
_SCRATCH = tempfile.mkdtemp(prefix="order-fulfillment-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_SCRATCH, 'default.db')}")
os.environ.setdefault("EVENTS_ENABLED", "false")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from order_fulfillment.database import build_engine, get_db, init_db
from order_fulfillment.models import Product
from order_fulfillment.publishers.event_publisher import EventPublisher
from order_fulfillment.schemas.order import CartLine
from order_fulfillment.services.checkout_service import CheckoutService
from order_fulfillment.services.transition_service import OrderTransitionService
from order_fulfillment.services.visibility_service import VisibilityService


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'orders.db'}"


@pytest.fixture
def engine(database_url):
    """A fresh database with the schema created."""
    engine = build_engine(database_url, lock_timeout=30)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    """Single session for service-level tests."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_product(db):
    """Insert a product and return its ID, leaving no transaction open."""

    def _make(price="50.00", quantity=10, farmer_id=1, retailer_id=20, name="Tomatoes"):
        product = Product(
            name=name,
            price=Decimal(price),
            quantity=quantity,
            farmer_id=farmer_id,
            retailer_id=retailer_id,
        )
        db.add(product)
        db.flush()
        product_id = product.id
        db.commit()
        return product_id

    return _make


@pytest.fixture
def stock(session_factory):
    """Read a product's available quantity in a short-lived session."""

    def _stock(product_id):
        with session_factory() as session:
            return session.get(Product, product_id).quantity

    return _stock


@pytest.fixture
def publisher():
    return EventPublisher(enabled=False)


@pytest.fixture
def checkout(db, publisher):
    return CheckoutService(db, event_publisher=publisher)


@pytest.fixture
def transitions(db, publisher):
    return OrderTransitionService(db, event_publisher=publisher)


@pytest.fixture
def visibility(db):
    return VisibilityService(db)


@pytest.fixture
def place_order(checkout):
    """Check out a cart given as (product_id, quantity) pairs."""

    def _place(customer_id, *items):
        cart = [CartLine(product_id=product_id, quantity=quantity) for product_id, quantity in items]
        return checkout.checkout(customer_id, cart)

    return _place


@pytest.fixture
def client(session_factory):
    """API client whose requests each get their own session."""
    from order_fulfillment.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()