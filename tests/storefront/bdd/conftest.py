"""Shared BDD fixtures and step definitions for the Storefront cart."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when

from storefront.cart.store import CartStore


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


@pytest.fixture()
def clock():
    """Controllable 'now' for time-dependent steps."""
    return {"now": datetime(2026, 3, 1, 12, 0, tzinfo=UTC)}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("an empty cart", target_fixture="store")
def empty_cart(settings):
    return CartStore(settings=settings)


@given(parsers.cfparse("standard shipping costs {price:g}"))
def standard_shipping(store, price):
    store.set_shipping_methods([{"id": "standard", "name": "Standard", "price": price, "is_default": True}])


@given(parsers.cfparse('"{product_id}" is in the cart with quantity {qty:d} at {price:g}'))
def item_in_cart(store, product_id, qty, price):
    store.add_or_increment(product_id, None, qty, unit_price=price)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('"{product_id}" is added with quantity {qty:d} at {price:g}'))
def add_item(store, product_id, qty, price, error):
    try:
        store.add_or_increment(product_id, None, qty, unit_price=price)
    except ValidationError as exc:
        error["exc"] = exc


@when(parsers.cfparse("{minutes:d} minutes pass"))
def minutes_pass(clock, minutes):
    clock["now"] += timedelta(minutes=minutes)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the subtotal is {amount}"))
def subtotal_is(store, amount):
    assert store.summary.subtotal == Decimal(amount)


@then(parsers.cfparse("the discount is {amount}"))
def discount_is(store, amount):
    assert store.summary.discount == Decimal(amount)


@then(parsers.cfparse("the shipping is {amount}"))
def shipping_is(store, amount):
    assert store.summary.shipping == Decimal(amount)


@then(parsers.cfparse("the tax is {amount}"))
def tax_is(store, amount):
    assert store.summary.tax == Decimal(amount)


@then(parsers.cfparse("the total is {amount}"))
def total_is(store, amount):
    assert store.summary.total == Decimal(amount)


@then(parsers.cfparse("the cart has {count:d} item"))
def cart_has_n_items_singular(store, count):
    assert len(store.items) == count


@then(parsers.cfparse("the cart has {count:d} items"))
def cart_has_n_items(store, count):
    assert len(store.items) == count


@then("the action fails with a validation error")
def action_fails(error):
    assert isinstance(error["exc"], ValidationError)
