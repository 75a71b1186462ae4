"""FastAPI routes for the mock cart service."""

from fastapi import APIRouter, Request

from storefront.mock_service.backend import MockCartBackend
from storefront.sync.schemas import (
    AddItemRequest,
    ApplyCouponRequest,
    BulkRemoveRequest,
    BulkUpdateRequest,
    CalculateShippingRequest,
    GiftWrapRequest,
    MergeRequest,
    UpdateItemRequest,
)

cart_router = APIRouter(prefix="/cart", tags=["cart"])


def _backend(request: Request) -> MockCartBackend:
    return request.app.state.backend


@cart_router.get("")
async def get_cart(request: Request) -> dict:
    return _backend(request).get_cart()


@cart_router.post("/items")
async def add_item(body: AddItemRequest, request: Request) -> dict:
    return _backend(request).add_item(body.product_id, body.variant_id, body.quantity, body.customizations)


@cart_router.put("/items/{item_id}")
async def update_item(item_id: str, body: UpdateItemRequest, request: Request) -> dict:
    return _backend(request).update_item(item_id, body.quantity)


@cart_router.delete("/items/{item_id}")
async def remove_item(item_id: str, request: Request) -> dict:
    return _backend(request).remove_item(item_id)


@cart_router.patch("/bulk-update")
async def bulk_update(body: BulkUpdateRequest, request: Request) -> dict:
    return _backend(request).bulk_update([u.model_dump() for u in body.updates])


@cart_router.delete("/bulk-remove")
async def bulk_remove(body: BulkRemoveRequest, request: Request) -> dict:
    return _backend(request).bulk_remove(body.item_ids)


@cart_router.put("/items/{item_id}/gift-wrap")
async def update_gift_wrap(item_id: str, body: GiftWrapRequest, request: Request) -> dict:
    return _backend(request).update_gift_wrap(item_id, body.enabled, body.message)


@cart_router.post("/coupons")
async def apply_coupon(body: ApplyCouponRequest, request: Request) -> dict:
    return _backend(request).apply_coupon(body.code)


@cart_router.delete("/coupons/{coupon_id}")
async def remove_coupon(coupon_id: str, request: Request) -> dict:
    return _backend(request).remove_coupon(coupon_id)


@cart_router.get("/shipping-methods")
async def list_shipping_methods(request: Request) -> list[dict]:
    return _backend(request).list_shipping_methods()


@cart_router.post("/calculate-shipping")
async def calculate_shipping(body: CalculateShippingRequest, request: Request) -> dict:
    return _backend(request).calculate_shipping(body.shipping_method_id)


@cart_router.delete("/clear")
async def clear_cart(request: Request) -> dict:
    return _backend(request).clear()


@cart_router.post("/validate")
async def validate_cart(request: Request) -> dict:
    return _backend(request).validate()


@cart_router.post("/merge")
async def merge_cart(body: MergeRequest, request: Request) -> dict:
    return _backend(request).merge([item.model_dump() for item in body.guest_items])
