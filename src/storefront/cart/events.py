"""Domain events for the ShoppingCart aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from storefront.domain import storefront


@storefront.event(part_of="ShoppingCart")
class CartItemAdded:
    """A product was added to the cart (or its quantity incremented)."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = String()
    quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@storefront.event(part_of="ShoppingCart")
class CartQuantityUpdated:
    """The quantity of a cart item was changed."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@storefront.event(part_of="ShoppingCart")
class CartItemRemoved:
    """An item left the cart and was parked in the undo buffer."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True)
    removed_at = DateTime(required=True)


@storefront.event(part_of="ShoppingCart")
class CartItemRestored:
    """A recently removed item was put back into the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True)


@storefront.event(part_of="ShoppingCart")
class CartAdditionReverted:
    """An unconfirmed addition was rolled back after the service rejected it."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True)


@storefront.event(part_of="ShoppingCart")
class CartGiftWrapUpdated:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    enabled = Boolean(required=True)
    cost = Float(default=0.0)


@storefront.event(part_of="ShoppingCart")
class CartCouponApplied:
    """A server-confirmed coupon was applied to the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_id = Identifier(required=True)
    coupon_code = String(required=True)
    discount_type = String(required=True)


@storefront.event(part_of="ShoppingCart")
class CartCouponRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_id = Identifier(required=True)
    coupon_code = String(required=True)


@storefront.event(part_of="ShoppingCart")
class CartCouponExpired:
    """An applied coupon passed its expiry and was dropped from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_id = Identifier(required=True)
    coupon_code = String(required=True)
    expired_at = DateTime(required=True)


@storefront.event(part_of="ShoppingCart")
class ShippingMethodsLoaded:
    __version__ = 1

    cart_id = Identifier(required=True)
    method_count = Integer(required=True)
    selected_method_id = String()


@storefront.event(part_of="ShoppingCart")
class ShippingMethodSelected:
    __version__ = 1

    cart_id = Identifier(required=True)
    method_id = Identifier(required=True)
    price = Float(required=True)


@storefront.event(part_of="ShoppingCart")
class CartReconciled:
    """Local state was superseded by the server's canonical cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_count = Integer(required=True)
    coupon_count = Integer(required=True)
    shipping_method_id = String()


@storefront.event(part_of="ShoppingCart")
class CartCleared:
    __version__ = 1

    cart_id = Identifier(required=True)
    items_removed_count = Integer(required=True)


@storefront.event(part_of="ShoppingCart")
class InventoryIssuesFlagged:
    """The cart service reported stock or availability problems for some items."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_ids = Text(required=True)  # JSON array of item ids
