"""Tests for cart item management."""

import json
from datetime import UTC, datetime

import pytest
from protean.exceptions import ValidationError

from storefront.cart.cart import ShoppingCart, is_temporary_id
from storefront.cart.events import (
    CartAdditionReverted,
    CartGiftWrapUpdated,
    CartItemAdded,
    CartItemRemoved,
    CartQuantityUpdated,
)


def _make_cart():
    return ShoppingCart.create()


class TestAddOrIncrement:
    def test_add_item(self):
        cart = _make_cart()
        cart.add_or_increment("prod-001", "var-001", 2, unit_price=500.0)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 2
        assert cart.items[0].unit_price == 500.0

    def test_new_item_gets_temporary_id(self):
        cart = _make_cart()
        item_id = cart.add_or_increment("prod-001", "var-001", 1, unit_price=10.0)
        assert is_temporary_id(item_id)
        assert str(cart.items[0].id) == item_id

    def test_add_item_raises_event(self):
        cart = _make_cart()
        cart.add_or_increment("prod-001", "var-001", 1, unit_price=10.0)
        added_events = [e for e in cart._events if isinstance(e, CartItemAdded)]
        assert len(added_events) == 1
        assert added_events[0].product_id == "prod-001"
        assert added_events[0].new_quantity == 1

    def test_same_product_and_variant_increments(self):
        cart = _make_cart()
        first_id = cart.add_or_increment("prod-001", "var-001", 1, unit_price=10.0)
        second_id = cart.add_or_increment("prod-001", "var-001", 2, unit_price=10.0)
        assert first_id == second_id
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 3

    def test_different_variant_creates_new_item(self):
        cart = _make_cart()
        cart.add_or_increment("prod-001", "var-001", 1, unit_price=10.0)
        cart.add_or_increment("prod-001", "var-002", 1, unit_price=10.0)
        assert len(cart.items) == 2

    def test_missing_variant_is_its_own_key(self):
        cart = _make_cart()
        cart.add_or_increment("prod-001", None, 1, unit_price=10.0)
        cart.add_or_increment("prod-001", None, 1, unit_price=10.0)
        cart.add_or_increment("prod-001", "var-001", 1, unit_price=10.0)
        assert len(cart.items) == 2
        assert cart.find_by_key("prod-001").quantity == 2

    def test_customizations_and_gift_wrap_are_kept(self):
        cart = _make_cart()
        cart.add_or_increment(
            "prod-001",
            quantity=1,
            unit_price=10.0,
            customizations={"engraving": "A.B."},
            gift_wrap={"enabled": True, "cost": 25.0, "message": "Happy birthday"},
        )
        item = cart.items[0]
        assert item.customization_data == {"engraving": "A.B."}
        assert item.gift_wrap.enabled is True
        assert item.gift_wrap.cost == 25.0

    def test_zero_quantity_is_rejected(self):
        cart = _make_cart()
        with pytest.raises(ValidationError):
            cart.add_or_increment("prod-001", "var-001", 0, unit_price=10.0)

    def test_negative_price_is_rejected(self):
        cart = _make_cart()
        with pytest.raises(ValidationError):
            cart.add_or_increment("prod-001", "var-001", 1, unit_price=-1.0)


class TestSetQuantity:
    def test_overwrites_quantity(self):
        cart = _make_cart()
        item_id = cart.add_or_increment("prod-001", "var-001", 1, unit_price=10.0)
        assert cart.set_quantity(item_id, 5) is True
        assert cart.items[0].quantity == 5

    def test_raises_event(self):
        cart = _make_cart()
        item_id = cart.add_or_increment("prod-001", "var-001", 1, unit_price=10.0)
        cart._events.clear()
        cart.set_quantity(item_id, 3)
        event = cart._events[0]
        assert isinstance(event, CartQuantityUpdated)
        assert event.previous_quantity == 1
        assert event.new_quantity == 3

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_non_positive_quantity_removes(self, quantity):
        cart = _make_cart()
        item_id = cart.add_or_increment("prod-001", "var-001", 2, unit_price=10.0)
        cart._events.clear()
        cart.set_quantity(item_id, quantity)
        assert len(cart.items) == 0
        assert isinstance(cart._events[0], CartItemRemoved)
        assert [str(e.item_id) for e in cart.removed_entries()] == [item_id]

    def test_unknown_item_is_a_noop(self):
        cart = _make_cart()
        assert cart.set_quantity("tmp-missing", 3) is False
        assert cart._events == []


class TestRemoveItem:
    def test_remove_item(self):
        cart = _make_cart()
        item_id = cart.add_or_increment("prod-001", "var-001", 1, unit_price=10.0)
        assert cart.remove_item(item_id) is True
        assert len(cart.items) == 0

    def test_remove_raises_event(self):
        cart = _make_cart()
        item_id = cart.add_or_increment("prod-001", "var-001", 4, unit_price=10.0)
        cart._events.clear()
        cart.remove_item(item_id)
        event = cart._events[0]
        assert isinstance(event, CartItemRemoved)
        assert event.quantity == 4

    def test_remove_unknown_item_is_a_noop(self):
        cart = _make_cart()
        assert cart.remove_item("tmp-missing") is False


class TestRevertAddition:
    def test_revert_drops_new_line_without_undo_entry(self):
        cart = _make_cart()
        item_id = cart.add_or_increment("prod-001", "var-001", 2, unit_price=10.0)
        cart.revert_addition(item_id, 2)
        assert len(cart.items) == 0
        assert cart.removed_entries() == []

    def test_revert_decrements_incremented_line(self):
        cart = _make_cart()
        item_id = cart.add_or_increment("prod-001", "var-001", 2, unit_price=10.0)
        cart.add_or_increment("prod-001", "var-001", 3, unit_price=10.0)
        cart._events.clear()
        cart.revert_addition(item_id, 3)
        assert cart.items[0].quantity == 2
        assert isinstance(cart._events[0], CartAdditionReverted)


class TestGiftWrap:
    def test_enable_gift_wrap(self):
        cart = _make_cart()
        item_id = cart.add_or_increment("prod-001", "var-001", 1, unit_price=10.0)
        assert cart.update_gift_wrap(item_id, True, cost=30.0, message="For you") is True
        assert cart.items[0].gift_wrap.enabled is True
        assert cart.items[0].gift_wrap.message == "For you"
        assert any(isinstance(e, CartGiftWrapUpdated) for e in cart._events)

    def test_gift_wrap_on_unknown_item_is_a_noop(self):
        cart = _make_cart()
        assert cart.update_gift_wrap("tmp-missing", True, cost=30.0) is False


class TestClear:
    def test_clear_empties_items_and_coupons(self):
        cart = _make_cart()
        cart.add_or_increment("prod-001", "var-001", 1, unit_price=10.0)
        cart.apply_coupon({"id": "cpn-1", "code": "SAVE10", "discount_type": "percentage", "value": 10.0})
        cart.clear()
        assert cart.items == []
        assert cart.applied_coupons == []
        assert cart.removed_entries() == []


class TestQueries:
    def test_item_count_sums_quantities(self):
        cart = _make_cart()
        cart.add_or_increment("prod-001", "var-001", 2, unit_price=10.0)
        cart.add_or_increment("prod-002", "var-001", 3, unit_price=10.0)
        assert cart.item_count == 5


class TestZeroQuantityMatchesRemove:
    LINES = [
        {
            "id": "srv-001",
            "product_id": "prod-001",
            "variant_id": "red",
            "quantity": 2,
            "unit_price": 500.0,
            "added_at": datetime(2026, 3, 1, 12, 0, tzinfo=UTC),
        },
        {
            "id": "srv-002",
            "product_id": "prod-002",
            "quantity": 1,
            "unit_price": 250.0,
            "added_at": datetime(2026, 3, 1, 12, 1, tzinfo=UTC),
        },
    ]
    AS_OF = datetime(2026, 3, 1, 12, 5, tzinfo=UTC)

    def _cart(self):
        cart = _make_cart()
        cart.replace_all(items=self.LINES)
        return cart

    @staticmethod
    def _undo_buffer(cart, as_of):
        return [(str(e.item_id), json.loads(e.snapshot), e.removed_at) for e in cart.removed_entries(as_of)]

    def test_same_items_and_undo_entry(self):
        zeroed = self._cart()
        removed = self._cart()

        zeroed.set_quantity("srv-001", 0, as_of=self.AS_OF)
        removed.remove_item("srv-001", as_of=self.AS_OF)

        assert [i.snapshot() for i in zeroed.items] == [i.snapshot() for i in removed.items]
        assert self._undo_buffer(zeroed, self.AS_OF) == self._undo_buffer(removed, self.AS_OF)
        assert self._undo_buffer(zeroed, self.AS_OF)[0][1]["quantity"] == 2

    def test_same_restore_outcome(self):
        zeroed = self._cart()
        removed = self._cart()
        zeroed.set_quantity("srv-001", 0, as_of=self.AS_OF)
        removed.remove_item("srv-001", as_of=self.AS_OF)

        assert zeroed.restore_item("srv-001", as_of=self.AS_OF) is True
        assert removed.restore_item("srv-001", as_of=self.AS_OF) is True
        assert [i.snapshot() for i in zeroed.items] == [i.snapshot() for i in removed.items]


class TestPullEvents:
    def test_returns_events_in_order_and_forgets_them(self):
        cart = _make_cart()
        item_id = cart.add_or_increment("prod-001", None, 1, unit_price=10.0)
        cart.remove_item(item_id)

        events = cart.pull_events()

        assert [type(e) for e in events] == [CartItemAdded, CartItemRemoved]
        assert cart.pull_events() == []
