"""Tests for conditional stock reservation and restore."""

import pytest

from order_fulfillment.models import Product
from order_fulfillment.repositories.inventory_ledger import InventoryLedger, ReservationResult


class TestReserve:
    def test_reserve_decrements_available_quantity(self, db, make_product, stock):
        product_id = make_product(quantity=5)
        ledger = InventoryLedger(db)

        assert ledger.reserve(product_id, 3) is ReservationResult.OK
        db.commit()

        assert stock(product_id) == 2

    def test_reserve_exact_remaining_quantity(self, db, make_product, stock):
        product_id = make_product(quantity=4)
        ledger = InventoryLedger(db)

        assert ledger.reserve(product_id, 4) is ReservationResult.OK
        db.commit()

        assert stock(product_id) == 0

    def test_reserve_more_than_available_changes_nothing(self, db, make_product, stock):
        product_id = make_product(quantity=2)
        ledger = InventoryLedger(db)

        assert ledger.reserve(product_id, 3) is ReservationResult.INSUFFICIENT_STOCK
        db.commit()

        assert stock(product_id) == 2

    def test_reserve_unknown_product(self, db):
        assert InventoryLedger(db).reserve(999, 1) is ReservationResult.PRODUCT_NOT_FOUND

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_reserve_rejects_non_positive_quantity(self, db, make_product, quantity):
        product_id = make_product(quantity=5)
        with pytest.raises(ValueError):
            InventoryLedger(db).reserve(product_id, quantity)

    def test_reservation_rolls_back_with_transaction(self, db, make_product, stock):
        product_id = make_product(quantity=5)
        ledger = InventoryLedger(db)

        ledger.reserve(product_id, 5)
        db.rollback()

        assert stock(product_id) == 5


class TestRestore:
    def test_restore_increments_unconditionally(self, db, make_product, stock):
        product_id = make_product(quantity=0)
        ledger = InventoryLedger(db)

        assert ledger.restore(product_id, 7) is ReservationResult.OK
        db.commit()

        assert stock(product_id) == 7

    def test_restore_unknown_product_is_reported(self, db):
        assert InventoryLedger(db).restore(999, 1) is ReservationResult.PRODUCT_NOT_FOUND


class TestGetProducts:
    def test_missing_ids_are_absent(self, db, make_product):
        product_id = make_product()
        products = InventoryLedger(db).get_products([product_id, 12345])

        assert set(products) == {product_id}
        assert isinstance(products[product_id], Product)

    def test_refresh_sees_direct_updates(self, db, make_product):
        product_id = make_product(quantity=5)
        ledger = InventoryLedger(db)
        loaded = ledger.get_products([product_id])[product_id]

        ledger.reserve(product_id, 2)

        assert loaded.quantity == 5
        assert ledger.get_products([product_id], refresh=True)[product_id].quantity == 3
