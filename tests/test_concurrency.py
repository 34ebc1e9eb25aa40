"""Concurrent checkouts and transitions against a shared database."""

import threading

import pytest

from order_fulfillment.models import Order, OrderStatus, Transition
from order_fulfillment.schemas.order import CartLine
from order_fulfillment.services.checkout_service import CheckoutService
from order_fulfillment.services.errors import IllegalTransitionError, InsufficientStockError
from order_fulfillment.services.transition_service import OrderTransitionService


def run_concurrently(count, target):
    """Start ``count`` threads calling ``target(index)`` together; collect outcomes."""
    barrier = threading.Barrier(count)
    results = [None] * count

    def worker(index):
        barrier.wait()
        try:
            results[index] = target(index)
        except Exception as exc:  # recorded for the assertions
            results[index] = exc

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return results


@pytest.fixture
def checkout_as(session_factory, publisher):
    def _checkout(customer_id, *items):
        with session_factory() as session:
            cart = [CartLine(product_id=product_id, quantity=quantity) for product_id, quantity in items]
            return CheckoutService(session, event_publisher=publisher).checkout(customer_id, cart)

    return _checkout


@pytest.fixture
def transition_as(session_factory, publisher):
    def _apply(order_id, transition, distributor_id=None):
        with session_factory() as session:
            service = OrderTransitionService(session, event_publisher=publisher)
            return service.apply(order_id, transition, distributor_id=distributor_id)

    return _apply


def test_stock_never_oversold(make_product, checkout_as, stock):
    product_id = make_product(quantity=7)

    results = run_concurrently(10, lambda i: checkout_as(100 + i, (product_id, 2)))

    placed = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, InsufficientStockError)]
    assert len(placed) == 3
    assert len(rejected) == 7
    assert stock(product_id) == 1


def test_overlapping_carts_do_not_deadlock(make_product, checkout_as, stock):
    first = make_product(quantity=100)
    second = make_product(quantity=100)

    def cart(i):
        # Half the carts list the products in reverse
        items = [(first, 1), (second, 1)]
        return checkout_as(100 + i, *(items if i % 2 else reversed(items)))

    results = run_concurrently(8, cart)

    assert all(not isinstance(r, Exception) for r in results), results
    assert stock(first) == 92
    assert stock(second) == 92


def test_concurrent_cancels_restore_once(make_product, checkout_as, transition_as, stock):
    product_id = make_product(quantity=10)
    order = checkout_as(7, (product_id, 4))

    results = run_concurrently(5, lambda i: transition_as(order.id, Transition.CANCEL))

    cancelled = [r for r in results if not isinstance(r, Exception)]
    illegal = [r for r in results if isinstance(r, IllegalTransitionError)]
    assert len(cancelled) == 1
    assert len(illegal) == 4
    assert stock(product_id) == 10


def test_concurrent_packs_assign_one_distributor(make_product, checkout_as, transition_as, session_factory):
    product_id = make_product(quantity=10)
    order = checkout_as(7, (product_id, 1))
    transition_as(order.id, Transition.CONFIRM)

    results = run_concurrently(4, lambda i: transition_as(order.id, Transition.PACK, distributor_id=50 + i))

    packed = [r for r in results if not isinstance(r, Exception)]
    assert len(packed) == 1
    assert all(isinstance(r, IllegalTransitionError) for r in results if isinstance(r, Exception))

    with session_factory() as session:
        stored = session.get(Order, order.id)
        assert stored.status is OrderStatus.PACKED
        assert stored.distributor_id == packed[0].distributor_id
