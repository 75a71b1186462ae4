"""CartStore: the owned cart instance handed to the presentation layer.

Wraps the ``ShoppingCart`` aggregate and ends every mutation with a commit:
expired coupons are pruned, the summary and checkout validation are
recomputed from scratch, subscribers are notified with the new summary and
the events the mutation raised, and a debounced save is scheduled.

Lifecycle is explicit: ``open()`` hydrates from storage, ``close()`` flushes
the pending save. Aggregates need an active ``storefront`` domain context.
"""

import json
from collections.abc import Callable
from contextlib import contextmanager
from datetime import datetime

import structlog

from storefront.cart.cart import UNCHANGED, ShoppingCart
from storefront.cart.pricing import CartSummary, CheckoutValidation, SummaryCalculator, checkout_validation
from storefront.config import CartSettings, get_settings
from storefront.shared.money import ZERO

logger = structlog.get_logger(__name__)

Listener = Callable[[CartSummary, list], None]


class CartStore:
    def __init__(
        self,
        cart: ShoppingCart | None = None,
        persistence=None,
        settings: CartSettings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.cart = cart or ShoppingCart.create(
            undo_retention_seconds=self.settings.undo_retention_seconds,
            undo_capacity=self.settings.undo_capacity,
        )
        self.calculator = SummaryCalculator(self.settings.tax_rate, self.settings.currency)
        self.persistence = persistence

        self.error: str | None = None
        self.coupon_error: str | None = None
        self.last_synced_at: datetime | None = None
        self.is_open = False

        self._in_flight = 0
        self._listeners: list[Listener] = []
        self.summary = CartSummary(currency=self.settings.currency)
        self.checkout_validation = CheckoutValidation()
        self._recompute()

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def open(self) -> "CartStore":
        """Hydrate the item list from storage, if any was saved."""
        if self.persistence is not None:
            saved = self.persistence.load()
            if saved:
                self.cart.replace_all(items=saved)
                logger.info("Cart hydrated from storage", cart_id=str(self.cart.id), item_count=len(saved))
        self.is_open = True
        self._commit(persist=False)
        return self

    def close(self) -> None:
        """Write any pending save immediately and stop accepting listeners."""
        if self.persistence is not None:
            self.persistence.flush()
        self._listeners.clear()
        self.is_open = False

    # -------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with ``(summary, events)`` after each commit.

        Returns a callable that unsubscribes it.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------------
    # Request tracking (used by the sync controller)
    # -------------------------------------------------------------------
    @property
    def is_updating(self) -> bool:
        return self._in_flight > 0

    @contextmanager
    def request_in_flight(self):
        self._in_flight += 1
        try:
            yield
        finally:
            self._in_flight -= 1

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def add_or_increment(self, product_id, variant_id=None, quantity=1, unit_price=0.0, **details) -> str:
        item_id = self.cart.add_or_increment(product_id, variant_id, quantity, unit_price, **details)
        self._commit()
        return item_id

    def set_quantity(self, item_id, quantity, as_of=None) -> bool:
        changed = self.cart.set_quantity(item_id, quantity, as_of=as_of)
        self._commit()
        return changed

    def remove(self, item_id, as_of=None) -> bool:
        removed = self.cart.remove_item(item_id, as_of=as_of)
        self._commit()
        return removed

    def restore(self, item_id, as_of=None) -> bool:
        restored = self.cart.restore_item(item_id, as_of=as_of)
        self._commit()
        return restored

    def revert_addition(self, item_id, quantity) -> bool:
        reverted = self.cart.revert_addition(item_id, quantity)
        self._commit()
        return reverted

    def update_gift_wrap(self, item_id, enabled, cost=0.0, message=None) -> bool:
        updated = self.cart.update_gift_wrap(item_id, enabled, cost, message)
        self._commit()
        return updated

    def apply_coupon(self, coupon, as_of=None) -> None:
        self.cart.apply_coupon(coupon)
        self.coupon_error = None
        self._commit(as_of=as_of)

    def remove_coupon(self, coupon_id) -> bool:
        removed = self.cart.remove_coupon(coupon_id)
        self._commit()
        return removed

    def set_shipping_methods(self, methods) -> None:
        self.cart.set_shipping_methods(methods)
        self._commit()

    def select_shipping_method(self, method_id) -> bool:
        selected = self.cart.select_shipping_method(method_id)
        self._commit()
        return selected

    def replace_all(self, items=UNCHANGED, coupons=UNCHANGED, shipping_method=UNCHANGED) -> None:
        self.cart.replace_all(items=items, coupons=coupons, shipping_method=shipping_method)
        self._commit()

    def flag_inventory_issues(self, item_ids) -> None:
        self.cart.flag_inventory_issues(item_ids)
        self._commit()

    def clear(self) -> None:
        self.cart.clear()
        self._commit()

    def set_tax_rate(self, rate) -> None:
        """Override the tax rate, e.g. once the shipping address is known."""
        self.calculator = SummaryCalculator(rate, self.settings.currency)
        self._commit(persist=False)

    def clear_error(self) -> None:
        self.error = None
        self.coupon_error = None

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    @property
    def items(self) -> list:
        return list(self.cart.items)

    @property
    def item_count(self) -> int:
        return self.cart.item_count

    @property
    def has_discounts(self) -> bool:
        return self.summary.discount > ZERO or self.summary.free_shipping_applied

    @property
    def is_ready_for_checkout(self) -> bool:
        return self.checkout_validation.is_ready

    def find_item(self, item_id):
        return self.cart.find_item(item_id)

    def items_for_product(self, product_id) -> list:
        return [i for i in self.cart.items if str(i.product_id) == str(product_id)]

    def recently_removed(self, as_of=None) -> list[dict]:
        return [
            {"item_id": str(e.item_id), "item": json.loads(e.snapshot), "removed_at": e.removed_at}
            for e in self.cart.removed_entries(as_of)
        ]

    def item_snapshots(self) -> list[dict]:
        return [item.snapshot() for item in self.cart.items]

    # -------------------------------------------------------------------
    # Commit
    # -------------------------------------------------------------------
    def _recompute(self, as_of=None) -> None:
        self.summary = self.calculator.compute(
            self.cart.items,
            self.cart.applied_coupons,
            self.cart.selected_shipping,
            as_of=as_of,
        )
        self.checkout_validation = checkout_validation(self.cart)

    def _commit(self, as_of=None, persist=True) -> None:
        self.cart.prune_expired_coupons(as_of)
        self._recompute(as_of)

        events = self.cart.pull_events()

        for listener in list(self._listeners):
            try:
                listener(self.summary, events)
            except Exception:
                logger.exception("Cart listener failed", cart_id=str(self.cart.id))

        if persist and self.persistence is not None:
            self.persistence.schedule_save(self.item_snapshots())
