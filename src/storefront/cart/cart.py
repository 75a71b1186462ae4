"""Shopping Cart aggregate: the client's authoritative-as-known cart.

The aggregate owns the line items, the coupons the server has confirmed, the
shipping methods on offer with the current selection, and a short-lived undo
buffer of removed items. Every operation is synchronous and in-memory: the
cart never talks to the network. Server truth only enters through
``replace_all``.

Money fields are floats on the entities (that is what the wire carries); the
pricing module converts them to Decimal before doing any arithmetic.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum
from uuid import uuid4

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from storefront.cart.events import (
    CartAdditionReverted,
    CartCleared,
    CartCouponApplied,
    CartCouponExpired,
    CartCouponRemoved,
    CartGiftWrapUpdated,
    CartItemAdded,
    CartItemRemoved,
    CartItemRestored,
    CartQuantityUpdated,
    CartReconciled,
    InventoryIssuesFlagged,
    ShippingMethodSelected,
    ShippingMethodsLoaded,
)
from storefront.domain import storefront

TEMP_ID_PREFIX = "tmp-"
DEFAULT_UNDO_RETENTION_SECONDS = 300
DEFAULT_UNDO_CAPACITY = 20

# Marks a replace_all component the server did not send
UNCHANGED = object()


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_SHIPPING = "free_shipping"


def temporary_id():
    return f"{TEMP_ID_PREFIX}{uuid4().hex[:12]}"


def is_temporary_id(item_id):
    return str(item_id).startswith(TEMP_ID_PREFIX)


def as_utc(value):
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="ShoppingCart")
class GiftWrap:
    """Gift wrapping on a line item. The cost is charged per unit."""

    enabled = Boolean(default=False)
    cost = Float(default=0.0, min_value=0.0)
    message = String(max_length=255)


@storefront.value_object(part_of="ShoppingCart")
class ShippingSelection:
    """The shipping method the cart is currently priced with.

    A copy of the method as the server last quoted it; the price may differ
    from the list price once the service has recalculated shipping.
    """

    method_id = Identifier(required=True)
    name = String(max_length=255)
    price = Float(required=True, min_value=0.0)
    estimated_days = String(max_length=50)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="ShoppingCart")
class CartItem:
    """A line item. Locally created items carry a ``tmp-`` id until the server assigns one."""

    product_id = Identifier(required=True)
    variant_id = String(max_length=255)
    title = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    original_price = Float(min_value=0.0)
    customizations = Text()  # JSON object
    gift_wrap = ValueObject(GiftWrap)
    added_at = DateTime()

    @property
    def key(self):
        """Composite (product, variant) key used to de-duplicate lines."""
        return (str(self.product_id), str(self.variant_id) if self.variant_id else None)

    @property
    def customization_data(self):
        return json.loads(self.customizations) if self.customizations else {}

    def snapshot(self):
        return {
            "id": str(self.id),
            "product_id": str(self.product_id),
            "variant_id": self.variant_id,
            "title": self.title,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "original_price": self.original_price,
            "customizations": self.customization_data,
            "gift_wrap": (
                {
                    "enabled": self.gift_wrap.enabled,
                    "cost": self.gift_wrap.cost,
                    "message": self.gift_wrap.message,
                }
                if self.gift_wrap
                else None
            ),
            "added_at": self.added_at.isoformat() if self.added_at else None,
        }


@storefront.entity(part_of="ShoppingCart")
class AppliedCoupon:
    """A coupon the cart service has validated and attached to the cart."""

    code = String(required=True, max_length=100)
    discount_type = String(required=True, choices=DiscountType)
    value = Float(required=True, min_value=0.0)
    minimum_amount = Float(min_value=0.0)
    maximum_discount = Float(min_value=0.0)
    description = String(max_length=500)
    expires_at = DateTime()

    def is_expired(self, as_of=None):
        if self.expires_at is None:
            return False
        return as_utc(self.expires_at) <= (as_of or datetime.now(UTC))


@storefront.entity(part_of="ShoppingCart")
class ShippingMethod:
    name = String(required=True, max_length=255)
    description = String(max_length=500)
    price = Float(required=True, min_value=0.0)
    estimated_days = String(max_length=50)
    is_default = Boolean(default=False)

    def to_selection(self):
        return ShippingSelection(
            method_id=str(self.id),
            name=self.name,
            price=self.price,
            estimated_days=self.estimated_days,
        )


@storefront.entity(part_of="ShoppingCart")
class RemovedCartItem:
    """Undo-buffer entry: a snapshot of a removed item and when it left the cart."""

    item_id = Identifier(required=True)
    snapshot = Text(required=True)  # JSON of CartItem.snapshot()
    removed_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Builders (plain dicts from the wire or from storage → entities)
# ---------------------------------------------------------------------------
def build_gift_wrap(data):
    if data is None or isinstance(data, GiftWrap):
        return data
    return GiftWrap(
        enabled=bool(data.get("enabled", False)),
        cost=data.get("cost") or 0.0,
        message=data.get("message"),
    )


def build_item(data):
    if isinstance(data, CartItem):
        return data

    customizations = data.get("customizations")
    added_at = data.get("added_at")
    return CartItem(
        id=str(data.get("id") or temporary_id()),
        product_id=str(data["product_id"]),
        variant_id=data.get("variant_id"),
        title=data.get("title"),
        quantity=data["quantity"],
        unit_price=data.get("unit_price") or 0.0,
        original_price=data.get("original_price"),
        customizations=json.dumps(customizations) if customizations else None,
        gift_wrap=build_gift_wrap(data.get("gift_wrap")),
        added_at=as_utc(added_at) if added_at else datetime.now(UTC),
    )


def build_coupon(data):
    if isinstance(data, AppliedCoupon):
        return data
    return AppliedCoupon(
        id=str(data["id"]),
        code=data["code"],
        discount_type=DiscountType(data["discount_type"]).value,
        value=data["value"],
        minimum_amount=data.get("minimum_amount"),
        maximum_discount=data.get("maximum_discount"),
        description=data.get("description"),
        expires_at=as_utc(data.get("expires_at")),
    )


def build_shipping_method(data):
    if isinstance(data, ShippingMethod):
        return data
    return ShippingMethod(
        id=str(data["id"]),
        name=data["name"],
        description=data.get("description"),
        price=data["price"],
        estimated_days=data.get("estimated_days"),
        is_default=bool(data.get("is_default", False)),
    )


def build_selection(data):
    if data is None or isinstance(data, ShippingSelection):
        return data
    return ShippingSelection(
        method_id=str(data.get("method_id") or data["id"]),
        name=data.get("name"),
        price=data["price"],
        estimated_days=data.get("estimated_days"),
    )


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class ShoppingCart:
    items = HasMany(CartItem)
    applied_coupons = HasMany(AppliedCoupon)
    shipping_methods = HasMany(ShippingMethod)
    selected_shipping = ValueObject(ShippingSelection)
    recently_removed = HasMany(RemovedCartItem)
    flagged_item_ids = Text()  # JSON array of item ids with inventory issues
    undo_retention_seconds = Integer(default=DEFAULT_UNDO_RETENTION_SECONDS, min_value=1)
    undo_capacity = Integer(default=DEFAULT_UNDO_CAPACITY, min_value=1)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def coupons_must_not_repeat(self):
        coupon_ids = [str(c.id) for c in self.applied_coupons]
        if len(coupon_ids) != len(set(coupon_ids)):
            raise ValidationError({"applied_coupons": ["A coupon cannot be applied twice"]})

    @invariant.post
    def undo_buffer_must_stay_bounded(self):
        if self.undo_capacity and len(self.recently_removed) > self.undo_capacity:
            raise ValidationError({"recently_removed": ["Undo buffer is over capacity"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        undo_retention_seconds=DEFAULT_UNDO_RETENTION_SECONDS,
        undo_capacity=DEFAULT_UNDO_CAPACITY,
    ):
        now = datetime.now(UTC)
        return cls(
            flagged_item_ids=json.dumps([]),
            undo_retention_seconds=undo_retention_seconds,
            undo_capacity=undo_capacity,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def item_count(self):
        return sum(item.quantity for item in self.items)

    @property
    def inventory_checked(self):
        flagged = set(self._flagged())
        return not any(str(item.id) in flagged for item in self.items)

    def find_item(self, item_id):
        return next((i for i in self.items if str(i.id) == str(item_id)), None)

    def find_by_key(self, product_id, variant_id=None):
        key = (str(product_id), str(variant_id) if variant_id else None)
        return next((i for i in self.items if i.key == key), None)

    def find_coupon(self, coupon_id):
        return next((c for c in self.applied_coupons if str(c.id) == str(coupon_id)), None)

    def find_shipping_method(self, method_id):
        return next((m for m in self.shipping_methods if str(m.id) == str(method_id)), None)

    def removed_entries(self, as_of=None):
        """Undo-buffer entries still inside the retention window, oldest first.

        Reading the buffer is what evicts stale entries.
        """
        self._evict_stale_removals(as_of or datetime.now(UTC))
        return sorted(self.recently_removed, key=lambda e: as_utc(e.removed_at))

    def pull_events(self):
        """Hand over the events raised since the last call, in order, and forget them."""
        events = list(self._events)
        self._events.clear()
        return events

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_or_increment(
        self,
        product_id,
        variant_id=None,
        quantity=1,
        unit_price=0.0,
        original_price=None,
        title=None,
        customizations=None,
        gift_wrap=None,
    ):
        """Add a line, or bump the quantity of the line with the same product and variant.

        Returns the id of the affected line (temporary for new lines).
        """
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        existing = self.find_by_key(product_id, variant_id)
        if existing:
            existing.quantity += quantity
            item = existing
        else:
            item = build_item(
                {
                    "id": temporary_id(),
                    "product_id": product_id,
                    "variant_id": variant_id,
                    "title": title,
                    "quantity": quantity,
                    "unit_price": unit_price,
                    "original_price": original_price,
                    "customizations": customizations,
                    "gift_wrap": gift_wrap,
                }
            )
            self.add_items(item)

        self._unflag(item.id)
        self._touch()

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=str(item.id),
                product_id=str(product_id),
                variant_id=variant_id,
                quantity=quantity,
                new_quantity=item.quantity,
            )
        )
        return str(item.id)

    def set_quantity(self, item_id, quantity, as_of=None):
        """Overwrite a line's quantity. Zero or less removes the line."""
        item = self.find_item(item_id)
        if item is None:
            return False

        if quantity <= 0:
            return self.remove_item(item_id, as_of=as_of)

        previous_quantity = item.quantity
        item.quantity = quantity
        self._unflag(item.id)
        self._touch()

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )
        return True

    def remove_item(self, item_id, as_of=None):
        """Remove a line and park a snapshot of it in the undo buffer."""
        item = self.find_item(item_id)
        if item is None:
            return False

        now = as_of or datetime.now(UTC)
        self._evict_stale_removals(now)
        self._park(item, now)
        self.remove_items(item)
        self._unflag(item.id)
        self._touch()

        self.raise_(
            CartItemRemoved(
                cart_id=str(self.id),
                item_id=str(item_id),
                quantity=item.quantity,
                removed_at=now,
            )
        )
        return True

    def restore_item(self, item_id, as_of=None):
        """Put a recently removed line back at the end of the cart.

        No-op once the retention window has passed.
        """
        now = as_of or datetime.now(UTC)
        self._evict_stale_removals(now)

        entry = next((e for e in self.recently_removed if str(e.item_id) == str(item_id)), None)
        if entry is None:
            return False

        self.remove_recently_removed(entry)
        if self.find_item(item_id) is not None:
            # A resync already brought the line back
            return False

        item = build_item(json.loads(entry.snapshot))
        self.add_items(item)
        self._touch()

        self.raise_(
            CartItemRestored(
                cart_id=str(self.id),
                item_id=str(item.id),
                quantity=item.quantity,
            )
        )
        return True

    def revert_addition(self, item_id, quantity):
        """Take back an addition the service did not confirm.

        The line is decremented, or dropped without going through the undo
        buffer when the addition created it.
        """
        item = self.find_item(item_id)
        if item is None:
            return False

        if item.quantity > quantity:
            item.quantity -= quantity
        else:
            self.remove_items(item)
        self._touch()

        self.raise_(
            CartAdditionReverted(
                cart_id=str(self.id),
                item_id=str(item_id),
                quantity=quantity,
            )
        )
        return True

    def update_gift_wrap(self, item_id, enabled, cost=0.0, message=None):
        item = self.find_item(item_id)
        if item is None:
            return False

        item.gift_wrap = GiftWrap(enabled=enabled, cost=cost or 0.0, message=message)
        self._touch()

        self.raise_(
            CartGiftWrapUpdated(
                cart_id=str(self.id),
                item_id=str(item_id),
                enabled=enabled,
                cost=cost or 0.0,
            )
        )
        return True

    def clear(self):
        """Empty the cart of items and coupons. Cleared items are not undoable."""
        removed_count = len(self.items)
        with atomic_change(self):
            for item in list(self.items):
                self.remove_items(item)
            for coupon in list(self.applied_coupons):
                self.remove_applied_coupons(coupon)
            self.flagged_item_ids = json.dumps([])
        self._touch()

        self.raise_(CartCleared(cart_id=str(self.id), items_removed_count=removed_count))

    # -------------------------------------------------------------------
    # Coupon management
    # -------------------------------------------------------------------
    def apply_coupon(self, coupon):
        """Attach a coupon the service has already validated.

        Eligibility is the service's call; re-applying a coupon refreshes its terms.
        """
        coupon = build_coupon(coupon)
        existing = self.find_coupon(coupon.id)

        with atomic_change(self):
            if existing:
                self.remove_applied_coupons(existing)
            self.add_applied_coupons(coupon)
        self._touch()

        self.raise_(
            CartCouponApplied(
                cart_id=str(self.id),
                coupon_id=str(coupon.id),
                coupon_code=coupon.code,
                discount_type=coupon.discount_type,
            )
        )

    def remove_coupon(self, coupon_id):
        coupon = self.find_coupon(coupon_id)
        if coupon is None:
            return False

        self.remove_applied_coupons(coupon)
        self._touch()

        self.raise_(
            CartCouponRemoved(
                cart_id=str(self.id),
                coupon_id=str(coupon_id),
                coupon_code=coupon.code,
            )
        )
        return True

    def prune_expired_coupons(self, as_of=None):
        """Drop coupons past their expiry. Returns the ids dropped."""
        now = as_of or datetime.now(UTC)
        expired = [c for c in self.applied_coupons if c.is_expired(now)]

        for coupon in expired:
            self.remove_applied_coupons(coupon)
            self.raise_(
                CartCouponExpired(
                    cart_id=str(self.id),
                    coupon_id=str(coupon.id),
                    coupon_code=coupon.code,
                    expired_at=as_utc(coupon.expires_at),
                )
            )

        if expired:
            self._touch()
        return [str(c.id) for c in expired]

    # -------------------------------------------------------------------
    # Shipping
    # -------------------------------------------------------------------
    def set_shipping_methods(self, methods):
        """Replace the methods on offer; picks the default one if nothing is selected yet."""
        new_methods = [build_shipping_method(m) for m in methods]

        with atomic_change(self):
            for method in list(self.shipping_methods):
                self.remove_shipping_methods(method)
            for method in new_methods:
                self.add_shipping_methods(method)

            if self.selected_shipping is None and new_methods:
                default = next((m for m in new_methods if m.is_default), new_methods[0])
                self.selected_shipping = default.to_selection()
        self._touch()

        self.raise_(
            ShippingMethodsLoaded(
                cart_id=str(self.id),
                method_count=len(new_methods),
                selected_method_id=str(self.selected_shipping.method_id) if self.selected_shipping else None,
            )
        )

    def select_shipping_method(self, method_id):
        """Select one of the known methods. Unknown ids are ignored."""
        method = self.find_shipping_method(method_id)
        if method is None:
            return False

        self.selected_shipping = method.to_selection()
        self._touch()

        self.raise_(
            ShippingMethodSelected(
                cart_id=str(self.id),
                method_id=str(method.id),
                price=method.price,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------
    def replace_all(self, items=UNCHANGED, coupons=UNCHANGED, shipping_method=UNCHANGED):
        """Supersede local state with the server's canonical cart.

        The only path by which server truth overwrites local truth. Components
        passed as ``UNCHANGED`` are left alone; an explicit ``None`` shipping
        method clears the selection.
        """
        new_items = [build_item(i) for i in items] if items is not UNCHANGED else None
        new_coupons = [build_coupon(c) for c in coupons] if coupons is not UNCHANGED else None

        with atomic_change(self):
            if new_items is not None:
                for item in list(self.items):
                    self.remove_items(item)
                for item in new_items:
                    self.add_items(item)
                present = {str(i.id) for i in new_items}
                self.flagged_item_ids = json.dumps([i for i in self._flagged() if i in present])

            if new_coupons is not None:
                for coupon in list(self.applied_coupons):
                    self.remove_applied_coupons(coupon)
                for coupon in new_coupons:
                    self.add_applied_coupons(coupon)

            if shipping_method is not UNCHANGED:
                self.selected_shipping = build_selection(shipping_method)
        self._touch()

        self.raise_(
            CartReconciled(
                cart_id=str(self.id),
                item_count=len(self.items),
                coupon_count=len(self.applied_coupons),
                shipping_method_id=str(self.selected_shipping.method_id) if self.selected_shipping else None,
            )
        )

    def flag_inventory_issues(self, item_ids):
        """Mark lines the service could not confirm stock for, until they change."""
        present = {str(i.id) for i in self.items}
        flagged = sorted(str(i) for i in item_ids if str(i) in present)
        self.flagged_item_ids = json.dumps(flagged)

        if flagged:
            self.raise_(InventoryIssuesFlagged(cart_id=str(self.id), item_ids=json.dumps(flagged)))

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _touch(self):
        self.updated_at = datetime.now(UTC)

    def _flagged(self):
        return json.loads(self.flagged_item_ids) if self.flagged_item_ids else []

    def _unflag(self, item_id):
        flagged = self._flagged()
        if str(item_id) in flagged:
            self.flagged_item_ids = json.dumps([i for i in flagged if i != str(item_id)])

    def _park(self, item, now):
        # One entry per item id; the oldest entries make room when full
        for entry in [e for e in self.recently_removed if str(e.item_id) == str(item.id)]:
            self.remove_recently_removed(entry)
        while len(self.recently_removed) >= self.undo_capacity:
            oldest = min(self.recently_removed, key=lambda e: as_utc(e.removed_at))
            self.remove_recently_removed(oldest)

        self.add_recently_removed(
            RemovedCartItem(
                item_id=str(item.id),
                snapshot=json.dumps(item.snapshot()),
                removed_at=now,
            )
        )

    def _evict_stale_removals(self, now):
        window = timedelta(seconds=self.undo_retention_seconds)
        for entry in list(self.recently_removed):
            if now - as_utc(entry.removed_at) >= window:
                self.remove_recently_removed(entry)
