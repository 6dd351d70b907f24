"""Tests for the shared stock policy."""

import pytest

from commerce_orchestrator.tools.cart_ledger import BelowMinimum, InvalidQuantity, OutOfStock
from commerce_orchestrator.tools.inventory import Availability, InventoryPolicy, availability_for
from tests.conftest import make_product


class TestAvailability:
    @pytest.mark.parametrize("stock,expected", [
        (10, Availability.AVAILABLE),
        (1, Availability.AVAILABLE),
        (0, Availability.CAN_SOURCE),
        (-3, Availability.CAN_SOURCE),
        (None, Availability.UNKNOWN),
    ])
    def test_stock_maps_to_signal(self, stock, expected):
        assert availability_for(stock) == expected

    def test_signal_values(self):
        assert Availability.AVAILABLE.value == "Available"
        assert Availability.CAN_SOURCE.value == "Not in stock — can source"
        assert Availability.UNKNOWN.value == "Unknown"


class TestCheckAddable:
    def setup_method(self):
        self.policy = InventoryPolicy()

    def test_in_stock_product_passes(self):
        self.policy.check_addable(make_product(stock_quantity=5), 1, 1)

    def test_unknown_stock_passes(self):
        self.policy.check_addable(make_product(stock_quantity=None), 1, 1)

    def test_zero_stock_rejected(self):
        with pytest.raises(OutOfStock):
            self.policy.check_addable(make_product(stock_quantity=0), 1, 1)

    def test_non_positive_quantity_rejected(self):
        with pytest.raises(InvalidQuantity):
            self.policy.check_addable(make_product(), 0, 0)

    def test_below_minimum_rejected(self):
        product = make_product(min_order_quantity=10)
        with pytest.raises(BelowMinimum, match="minimum order quantity of 10"):
            self.policy.check_addable(product, 5, 5)

    def test_minimum_checked_against_line_total(self):
        product = make_product(min_order_quantity=10)
        self.policy.check_addable(product, 2, 12)

    def test_missing_minimum_defaults_to_one(self):
        product = make_product(min_order_quantity=None)
        assert self.policy.minimum_quantity(product) == 1

    def test_error_message_hides_stock_count(self):
        product = make_product(stock_quantity=0, name="Rear Shoe")
        with pytest.raises(OutOfStock) as exc_info:
            self.policy.check_addable(product, 1, 1)
        assert "0" not in str(exc_info.value).replace(product.product_code, "")
