"""Cart pricing: a pure projection from cart contents to a financial summary.

The calculator never mutates the cart and never touches the network. All
accumulation is in unrounded Decimal; ``CartSummary.rounded()`` produces the
display form.

Coupons stack additively: every active coupon contributes, and no exclusivity
between coupon types is enforced at this layer.
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from decimal import Decimal

from storefront.cart.cart import DiscountType
from storefront.shared.money import ZERO, HUNDRED, non_negative, round_money, to_decimal


@dataclass(frozen=True)
class CartSummary:
    """Totals for one state of the cart."""

    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    shipping: Decimal = ZERO
    tax: Decimal = ZERO
    gift_wrap_cost: Decimal = ZERO
    total: Decimal = ZERO
    savings: Decimal = ZERO
    item_count: int = 0
    applied_coupons: tuple[str, ...] = field(default_factory=tuple)
    free_shipping_applied: bool = False
    currency: str = "INR"

    def rounded(self) -> "CartSummary":
        """Copy with every amount rounded to the currency's minor unit."""
        return replace(
            self,
            subtotal=round_money(self.subtotal, self.currency),
            discount=round_money(self.discount, self.currency),
            shipping=round_money(self.shipping, self.currency),
            tax=round_money(self.tax, self.currency),
            gift_wrap_cost=round_money(self.gift_wrap_cost, self.currency),
            total=round_money(self.total, self.currency),
            savings=round_money(self.savings, self.currency),
        )

    def to_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "discount": str(self.discount),
            "shipping": str(self.shipping),
            "tax": str(self.tax),
            "gift_wrap_cost": str(self.gift_wrap_cost),
            "total": str(self.total),
            "savings": str(self.savings),
            "item_count": self.item_count,
            "applied_coupons": list(self.applied_coupons),
            "free_shipping_applied": self.free_shipping_applied,
            "currency": self.currency,
        }


@dataclass(frozen=True)
class CheckoutValidation:
    has_items: bool = False
    has_valid_shipping: bool = False
    inventory_checked: bool = True

    @property
    def is_ready(self) -> bool:
        return self.has_items and self.has_valid_shipping and self.inventory_checked


def coupon_discount(coupon, subtotal: Decimal) -> Decimal:
    """Discount one coupon contributes against the given subtotal.

    Free-shipping coupons contribute nothing here; they zero the shipping line instead.
    """
    discount_type = DiscountType(coupon.discount_type)
    value = to_decimal(coupon.value)

    if discount_type == DiscountType.PERCENTAGE:
        amount = subtotal * value / HUNDRED
        if coupon.maximum_discount is not None:
            amount = min(amount, to_decimal(coupon.maximum_discount))
        return amount
    if discount_type == DiscountType.FIXED:
        return value
    return ZERO


class SummaryCalculator:
    """Computes a ``CartSummary`` from items, coupons and the shipping selection."""

    def __init__(self, tax_rate, currency: str = "INR"):
        self.tax_rate = to_decimal(tax_rate)
        self.currency = currency

    def compute(self, items, coupons=(), shipping=None, as_of: datetime | None = None) -> CartSummary:
        as_of = as_of or datetime.now(UTC)
        items = list(items)

        subtotal = sum((to_decimal(i.unit_price) * i.quantity for i in items), ZERO)
        gift_wrap_cost = sum(
            (to_decimal(i.gift_wrap.cost) * i.quantity for i in items if i.gift_wrap and i.gift_wrap.enabled),
            ZERO,
        )

        active = [c for c in coupons if not c.is_expired(as_of)]
        discount = sum((coupon_discount(c, subtotal) for c in active), ZERO)
        free_shipping = any(DiscountType(c.discount_type) == DiscountType.FREE_SHIPPING for c in active)

        nominal_shipping = to_decimal(shipping.price) if shipping else ZERO
        shipping_cost = ZERO if free_shipping else nominal_shipping

        discounted = non_negative(subtotal - discount)
        tax = discounted * self.tax_rate
        total = discounted + shipping_cost + tax + gift_wrap_cost
        savings = (subtotal + nominal_shipping + tax + gift_wrap_cost) - total

        return CartSummary(
            subtotal=subtotal,
            discount=min(discount, subtotal),
            shipping=shipping_cost,
            tax=tax,
            gift_wrap_cost=gift_wrap_cost,
            total=total,
            savings=savings,
            item_count=sum(i.quantity for i in items),
            applied_coupons=tuple(c.code for c in active),
            free_shipping_applied=free_shipping,
            currency=self.currency,
        )


def checkout_validation(cart) -> CheckoutValidation:
    return CheckoutValidation(
        has_items=len(cart.items) > 0,
        has_valid_shipping=cart.selected_shipping is not None,
        inventory_checked=cart.inventory_checked,
    )
