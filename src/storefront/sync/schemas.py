"""Pydantic schemas for the cart service wire format.

The service speaks camelCase JSON; the models expose snake_case attributes
and dump to the plain dicts the cart aggregate's builders accept. These are
the anti-corruption layer between the remote contract and the domain.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront.cart.cart import UNCHANGED


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Cart contents
# ---------------------------------------------------------------------------
class GiftWrapPayload(WireModel):
    enabled: bool = False
    cost: float = Field(default=0.0, ge=0)
    message: str | None = None


class CartItemPayload(WireModel):
    id: str
    product_id: str
    variant_id: str | None = None
    title: str | None = None
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0, alias="price")
    original_price: float | None = Field(default=None, ge=0)
    customizations: dict | None = None
    gift_wrap: GiftWrapPayload | None = None
    added_at: datetime | None = None


class CouponPayload(WireModel):
    id: str
    code: str
    discount_type: Literal["percentage", "fixed", "free_shipping"] = Field(alias="type")
    value: float = Field(ge=0)
    minimum_amount: float | None = Field(default=None, ge=0)
    maximum_discount: float | None = Field(default=None, ge=0)
    description: str | None = None
    expires_at: datetime | None = None


class ShippingMethodPayload(WireModel):
    id: str
    name: str
    description: str | None = None
    price: float = Field(ge=0)
    estimated_days: str | None = None
    is_default: bool = False


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
class CartEnvelope(WireModel):
    """Canonical cart state returned by every successful call.

    ``appliedCoupons`` and ``shippingMethod`` may be absent; an absent
    component means "unchanged", which is different from an explicit null.
    """

    items: list[CartItemPayload] = Field(default_factory=list)
    applied_coupons: list[CouponPayload] | None = None
    shipping_method: ShippingMethodPayload | None = None
    coupon: CouponPayload | None = None

    def replacement(self) -> dict:
        """Keyword arguments for ``CartStore.replace_all``."""
        fields = self.model_fields_set
        return {
            "items": [i.model_dump() for i in self.items] if "items" in fields else UNCHANGED,
            "coupons": (
                [c.model_dump() for c in self.applied_coupons or []] if "applied_coupons" in fields else UNCHANGED
            ),
            "shipping_method": (
                (self.shipping_method.model_dump() if self.shipping_method else None)
                if "shipping_method" in fields
                else UNCHANGED
            ),
        }


class ValidationIssue(WireModel):
    item_id: str
    type: str
    message: str


class ValidationReport(WireModel):
    is_valid: bool = True
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    updated_items: list[CartItemPayload] = Field(default_factory=list)


class ErrorBody(BaseModel):
    message: str = "Cart service request failed"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
class AddItemRequest(WireModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1)
    customizations: dict | None = None


class UpdateItemRequest(WireModel):
    quantity: int = Field(ge=0)


class GiftWrapRequest(WireModel):
    enabled: bool
    message: str | None = None


class ApplyCouponRequest(WireModel):
    code: str = Field(min_length=1)


class CalculateShippingRequest(WireModel):
    shipping_method_id: str


class MergeRequest(WireModel):
    guest_items: list[CartItemPayload] = Field(default_factory=list)


class QuantityUpdate(WireModel):
    item_id: str
    quantity: int = Field(ge=0)


class BulkUpdateRequest(WireModel):
    updates: list[QuantityUpdate] = Field(min_length=1)


class BulkRemoveRequest(WireModel):
    item_ids: list[str] = Field(min_length=1)
