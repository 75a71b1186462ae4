"""BDD tests for cart pricing."""

from pytest_bdd import parsers, scenarios, when

scenarios("features/cart_pricing.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('a {value:d}% coupon "{code}" capped at {cap:g} is applied'))
def apply_percentage_coupon(store, value, code, cap):
    store.apply_coupon(
        {
            "id": f"cpn-{code.lower()}",
            "code": code,
            "discount_type": "percentage",
            "value": float(value),
            "maximum_discount": cap,
        }
    )


@when(parsers.cfparse('a free shipping coupon "{code}" is applied'))
def apply_free_shipping_coupon(store, code):
    store.apply_coupon({"id": f"cpn-{code.lower()}", "code": code, "discount_type": "free_shipping", "value": 0.0})


@when(parsers.cfparse('a fixed coupon "{code}" worth {value:g} is applied'))
def apply_fixed_coupon(store, code, value):
    store.apply_coupon({"id": f"cpn-{code.lower()}", "code": code, "discount_type": "fixed", "value": value})


@when(parsers.cfparse('the quantity of "{product_id}" is set to {qty:d}'))
def set_quantity(store, product_id, qty):
    item = store.items_for_product(product_id)[0]
    store.set_quantity(str(item.id), qty)
