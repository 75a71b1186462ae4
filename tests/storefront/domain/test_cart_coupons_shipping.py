"""Tests for coupons and shipping selection on the cart."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError

from storefront.cart.cart import ShoppingCart
from storefront.cart.events import (
    CartCouponApplied,
    CartCouponExpired,
    CartCouponRemoved,
    ShippingMethodSelected,
    ShippingMethodsLoaded,
)

SAVE10 = {
    "id": "cpn-save10",
    "code": "SAVE10",
    "discount_type": "percentage",
    "value": 10.0,
    "maximum_discount": 100.0,
}

METHODS = [
    {"id": "standard", "name": "Standard", "price": 50.0},
    {"id": "express", "name": "Express", "price": 150.0, "is_default": True},
]


def _make_cart():
    return ShoppingCart.create()


class TestCoupons:
    def test_apply_coupon(self):
        cart = _make_cart()
        cart.apply_coupon(SAVE10)
        assert len(cart.applied_coupons) == 1
        assert cart.applied_coupons[0].code == "SAVE10"
        assert isinstance(cart._events[0], CartCouponApplied)

    def test_reapplying_refreshes_terms(self):
        cart = _make_cart()
        cart.apply_coupon(SAVE10)
        cart.apply_coupon({**SAVE10, "value": 15.0})
        assert len(cart.applied_coupons) == 1
        assert cart.applied_coupons[0].value == 15.0

    def test_unknown_discount_type_is_rejected(self):
        cart = _make_cart()
        with pytest.raises((ValidationError, ValueError)):
            cart.apply_coupon({**SAVE10, "discount_type": "bogo"})

    def test_remove_coupon(self):
        cart = _make_cart()
        cart.apply_coupon(SAVE10)
        cart._events.clear()
        assert cart.remove_coupon("cpn-save10") is True
        assert cart.applied_coupons == []
        assert isinstance(cart._events[0], CartCouponRemoved)

    def test_remove_unknown_coupon_is_a_noop(self):
        cart = _make_cart()
        assert cart.remove_coupon("cpn-missing") is False

    def test_prune_expired_coupons(self):
        cart = _make_cart()
        now = datetime(2026, 3, 1, tzinfo=UTC)
        cart.apply_coupon({**SAVE10, "expires_at": now - timedelta(days=1)})
        cart.apply_coupon({"id": "cpn-ship", "code": "FREESHIP", "discount_type": "free_shipping", "value": 0.0})
        cart._events.clear()

        assert cart.prune_expired_coupons(as_of=now) == ["cpn-save10"]
        assert [c.code for c in cart.applied_coupons] == ["FREESHIP"]
        assert isinstance(cart._events[0], CartCouponExpired)

    def test_naive_expiry_is_treated_as_utc(self):
        cart = _make_cart()
        cart.apply_coupon({**SAVE10, "expires_at": datetime(2026, 3, 1, 12, 0)})
        assert cart.applied_coupons[0].is_expired(datetime(2026, 3, 1, 11, 59, tzinfo=UTC)) is False
        assert cart.applied_coupons[0].is_expired(datetime(2026, 3, 1, 12, 0, tzinfo=UTC)) is True


class TestShipping:
    def test_loading_methods_selects_default(self):
        cart = _make_cart()
        cart.set_shipping_methods(METHODS)
        assert len(cart.shipping_methods) == 2
        assert cart.selected_shipping.method_id == "express"
        assert isinstance(cart._events[0], ShippingMethodsLoaded)

    def test_loading_methods_without_default_selects_first(self):
        cart = _make_cart()
        cart.set_shipping_methods([{**m, "is_default": False} for m in METHODS])
        assert cart.selected_shipping.method_id == "standard"

    def test_reloading_keeps_existing_selection(self):
        cart = _make_cart()
        cart.set_shipping_methods(METHODS)
        cart.select_shipping_method("standard")
        cart.set_shipping_methods(METHODS)
        assert cart.selected_shipping.method_id == "standard"

    def test_select_known_method(self):
        cart = _make_cart()
        cart.set_shipping_methods(METHODS)
        cart._events.clear()
        assert cart.select_shipping_method("standard") is True
        assert cart.selected_shipping.price == 50.0
        assert isinstance(cart._events[0], ShippingMethodSelected)

    def test_select_unknown_method_is_a_noop(self):
        cart = _make_cart()
        cart.set_shipping_methods(METHODS)
        assert cart.select_shipping_method("drone") is False
        assert cart.selected_shipping.method_id == "express"
