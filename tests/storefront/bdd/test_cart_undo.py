"""BDD tests for undoing item removal."""

from pytest_bdd import parsers, scenarios, then, when

scenarios("features/cart_undo.feature")


@when("the item is removed", target_fixture="removed_id")
def remove_item(store, clock):
    item_id = str(store.items[0].id)
    store.remove(item_id, as_of=clock["now"])
    return item_id


@when("the item is restored")
def restore_item(store, clock, removed_id):
    store.restore(removed_id, as_of=clock["now"])


@then("nothing is left to restore")
def nothing_to_restore(store, clock):
    assert store.recently_removed(as_of=clock["now"]) == []


@then(parsers.cfparse("the restored line has quantity {qty:d} and price {price:g}"))
def restored_line(store, removed_id, qty, price):
    item = store.find_item(removed_id)
    assert item.quantity == qty
    assert item.unit_price == price
