"""In-memory cart backend implementing the remote cart service contract.

Used by the FastAPI mock service for local development and wrapped by the
FakeCartService in tests. It is the server side of the contract: it owns
prices, assigns item ids, checks stock and validates coupons, and answers
every call with the canonical cart envelope in wire (camelCase) form.
"""

from datetime import UTC, datetime
from uuid import uuid4

import structlog

from storefront.cart.cart import as_utc
from storefront.shared.money import ZERO, to_decimal
from storefront.sync.schemas import (
    CartEnvelope,
    CartItemPayload,
    CouponPayload,
    GiftWrapPayload,
    ShippingMethodPayload,
    ValidationIssue,
    ValidationReport,
)

logger = structlog.get_logger(__name__)

DEFAULT_SHIPPING_METHODS = [
    {"id": "standard", "name": "Standard Delivery", "price": 50.0, "estimatedDays": "5-7", "isDefault": True},
    {"id": "express", "name": "Express Delivery", "price": 150.0, "estimatedDays": "1-2"},
]


class BackendError(Exception):
    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class MockCartBackend:
    def __init__(
        self,
        catalogue: dict[str, float] | None = None,
        coupons: list[dict] | None = None,
        shipping_methods: list[dict] | None = None,
        stock: dict[str, int] | None = None,
        gift_wrap_cost: float = 50.0,
    ) -> None:
        self.catalogue = dict(catalogue or {})
        self.coupons = {
            c.code.upper(): c for c in (CouponPayload.model_validate(data) for data in (coupons or []))
        }
        self.shipping_methods = [
            ShippingMethodPayload.model_validate(m)
            for m in (shipping_methods if shipping_methods is not None else DEFAULT_SHIPPING_METHODS)
        ]
        self.stock = dict(stock or {})
        self.gift_wrap_cost = gift_wrap_cost

        self.items: list[CartItemPayload] = []
        self.applied_coupons: list[CouponPayload] = []
        self.shipping_method: ShippingMethodPayload | None = None

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def envelope(self, coupon: CouponPayload | None = None) -> dict:
        envelope = CartEnvelope(
            items=self.items,
            applied_coupons=self.applied_coupons,
            shipping_method=self.shipping_method,
            coupon=coupon,
        )
        return envelope.model_dump(by_alias=True, mode="json", exclude_none=True)

    def get_cart(self) -> dict:
        return self.envelope()

    # -------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------
    def add_item(self, product_id, variant_id=None, quantity=1, customizations=None) -> dict:
        if product_id not in self.catalogue:
            raise BackendError("Product not found", 404)

        existing = next(
            (i for i in self.items if i.product_id == product_id and i.variant_id == variant_id),
            None,
        )
        new_quantity = quantity + (existing.quantity if existing else 0)
        self._check_stock(product_id, new_quantity)

        if existing:
            existing.quantity = new_quantity
        else:
            self.items.append(
                CartItemPayload(
                    id=f"srv-{uuid4().hex[:12]}",
                    product_id=product_id,
                    variant_id=variant_id,
                    quantity=quantity,
                    unit_price=self.catalogue[product_id],
                    customizations=customizations,
                    added_at=datetime.now(UTC),
                )
            )

        logger.info("Mock cart item added", product_id=product_id, quantity=quantity)
        return self.envelope()

    def update_item(self, item_id, quantity) -> dict:
        item = self._find_item(item_id)
        if quantity <= 0:
            self.items.remove(item)
            return self.envelope()

        self._check_stock(item.product_id, quantity)
        item.quantity = quantity
        return self.envelope()

    def remove_item(self, item_id) -> dict:
        self.items.remove(self._find_item(item_id))
        return self.envelope()

    def bulk_update(self, updates) -> dict:
        """Set several quantities at once. Nothing changes unless every update is valid."""
        planned = [(self._find_item(u["item_id"]), u["quantity"]) for u in updates]
        for item, quantity in planned:
            if quantity > 0:
                self._check_stock(item.product_id, quantity)

        for item, quantity in planned:
            if quantity <= 0:
                self.items.remove(item)
            else:
                item.quantity = quantity
        return self.envelope()

    def bulk_remove(self, item_ids) -> dict:
        doomed = [self._find_item(item_id) for item_id in item_ids]
        self.items = [i for i in self.items if i not in doomed]
        logger.info("Mock cart items removed", count=len(doomed))
        return self.envelope()

    def update_gift_wrap(self, item_id, enabled, message=None) -> dict:
        item = self._find_item(item_id)
        item.gift_wrap = GiftWrapPayload(
            enabled=enabled,
            cost=self.gift_wrap_cost if enabled else 0.0,
            message=message if enabled else None,
        )
        return self.envelope()

    def clear(self) -> dict:
        self.items = []
        self.applied_coupons = []
        return self.envelope()

    # -------------------------------------------------------------------
    # Coupons
    # -------------------------------------------------------------------
    def apply_coupon(self, code) -> dict:
        coupon = self.coupons.get(code.strip().upper())
        if coupon is None:
            raise BackendError("Invalid coupon code", 404)
        if coupon.expires_at and as_utc(coupon.expires_at) <= datetime.now(UTC):
            raise BackendError("Coupon has expired", 422)
        if any(c.id == coupon.id for c in self.applied_coupons):
            raise BackendError("Coupon already applied", 409)
        if coupon.minimum_amount and self._subtotal() < to_decimal(coupon.minimum_amount):
            raise BackendError(f"Minimum order amount of {coupon.minimum_amount:g} required", 422)

        self.applied_coupons.append(coupon)
        return self.envelope(coupon=coupon)

    def remove_coupon(self, coupon_id) -> dict:
        coupon = next((c for c in self.applied_coupons if c.id == coupon_id), None)
        if coupon is None:
            raise BackendError("Coupon not applied to cart", 404)
        self.applied_coupons.remove(coupon)
        return self.envelope()

    # -------------------------------------------------------------------
    # Shipping
    # -------------------------------------------------------------------
    def calculate_shipping(self, method_id) -> dict:
        method = next((m for m in self.shipping_methods if m.id == method_id), None)
        if method is None:
            raise BackendError("Shipping method not available", 404)
        self.shipping_method = method
        return self.envelope()

    def list_shipping_methods(self) -> list[dict]:
        return [m.model_dump(by_alias=True, mode="json") for m in self.shipping_methods]

    # -------------------------------------------------------------------
    # Validation and merge
    # -------------------------------------------------------------------
    def validate(self) -> dict:
        errors = []
        for item in self.items:
            available = self.stock.get(item.product_id)
            if available is not None and item.quantity > available:
                errors.append(
                    ValidationIssue(item_id=item.id, type="stock", message=f"Only {available} left in stock")
                )
            if item.product_id not in self.catalogue:
                errors.append(
                    ValidationIssue(item_id=item.id, type="availability", message="Product is no longer available")
                )

        updated = []
        for item in self.items:
            price = self.catalogue.get(item.product_id)
            if price is not None and price != item.unit_price:
                item.unit_price = price
                updated.append(item)

        report = ValidationReport(is_valid=not errors, errors=errors, updated_items=updated)
        return report.model_dump(by_alias=True, mode="json", exclude_none=True)

    def merge(self, guest_items) -> dict:
        for guest in guest_items:
            guest = CartItemPayload.model_validate(guest)
            if guest.product_id not in self.catalogue:
                logger.warning("Skipping unknown product in guest cart", product_id=guest.product_id)
                continue
            self.add_item(guest.product_id, guest.variant_id, guest.quantity, guest.customizations)
        return self.envelope()

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _find_item(self, item_id) -> CartItemPayload:
        item = next((i for i in self.items if i.id == item_id), None)
        if item is None:
            raise BackendError("Item not found in cart", 404)
        return item

    def _check_stock(self, product_id, quantity) -> None:
        available = self.stock.get(product_id)
        if available is not None and quantity > available:
            raise BackendError(f"Only {available} left in stock", 409)

    def _subtotal(self):
        return sum((to_decimal(i.unit_price) * i.quantity for i in self.items), ZERO)
