"""Configurable fake cart service for development and testing.

Runs the in-memory MockCartBackend in-process, so responses carry real
server-assigned ids and prices without any network. It can be configured
to fail, and individual calls can be held until the test releases them to
make responses arrive out of order.
"""

import asyncio

from storefront.mock_service.backend import BackendError, MockCartBackend
from storefront.sync.port import CartService, CartServiceError, CartServiceUnavailable
from storefront.sync.schemas import CartEnvelope, ShippingMethodPayload, ValidationReport


class FakeCartService(CartService):
    """In-process cart service with failure injection and response gating."""

    def __init__(self, backend: MockCartBackend | None = None) -> None:
        self.backend = backend or MockCartBackend()
        self.should_succeed: bool = True
        self.failure_reason: str = "Cart service rejected the request"
        self.unavailable: bool = False
        self.calls: list[dict] = []
        self._holds: list[asyncio.Event] = []

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "Cart service rejected the request",
        unavailable: bool = False,
    ) -> None:
        """Configure service behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.unavailable = unavailable

    def hold_next(self) -> asyncio.Event:
        """Hold the next call's response until the returned event is set.

        The server-side state change happens when the call arrives; only the
        response is delayed.
        """
        release = asyncio.Event()
        self._holds.append(release)
        return release

    async def _call(self, method: str, operation, **params) -> dict:
        self.calls.append({"method": method, **params})
        release = self._holds.pop(0) if self._holds else None

        if self.unavailable:
            raise CartServiceUnavailable("Cart service is unavailable")
        if not self.should_succeed:
            raise CartServiceError(self.failure_reason, 400)

        try:
            response = operation(**params)
        except BackendError as exc:
            raise CartServiceError(exc.message, exc.status_code) from exc

        if release is not None:
            await release.wait()
        return response

    async def get_cart(self) -> CartEnvelope:
        return CartEnvelope.model_validate(await self._call("get_cart", self.backend.get_cart))

    async def add_item(self, product_id, variant_id, quantity, customizations=None) -> CartEnvelope:
        response = await self._call(
            "add_item",
            self.backend.add_item,
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
            customizations=customizations,
        )
        return CartEnvelope.model_validate(response)

    async def update_item(self, item_id, quantity) -> CartEnvelope:
        response = await self._call("update_item", self.backend.update_item, item_id=item_id, quantity=quantity)
        return CartEnvelope.model_validate(response)

    async def remove_item(self, item_id) -> CartEnvelope:
        response = await self._call("remove_item", self.backend.remove_item, item_id=item_id)
        return CartEnvelope.model_validate(response)

    async def update_items(self, updates) -> CartEnvelope:
        response = await self._call("update_items", self.backend.bulk_update, updates=list(updates))
        return CartEnvelope.model_validate(response)

    async def remove_items(self, item_ids) -> CartEnvelope:
        response = await self._call("remove_items", self.backend.bulk_remove, item_ids=list(item_ids))
        return CartEnvelope.model_validate(response)

    async def update_gift_wrap(self, item_id, enabled, message=None) -> CartEnvelope:
        response = await self._call(
            "update_gift_wrap",
            self.backend.update_gift_wrap,
            item_id=item_id,
            enabled=enabled,
            message=message,
        )
        return CartEnvelope.model_validate(response)

    async def apply_coupon(self, code) -> CartEnvelope:
        response = await self._call("apply_coupon", self.backend.apply_coupon, code=code)
        return CartEnvelope.model_validate(response)

    async def remove_coupon(self, coupon_id) -> CartEnvelope:
        response = await self._call("remove_coupon", self.backend.remove_coupon, coupon_id=coupon_id)
        return CartEnvelope.model_validate(response)

    async def get_shipping_methods(self) -> list[ShippingMethodPayload]:
        methods = await self._call("get_shipping_methods", self.backend.list_shipping_methods)
        return [ShippingMethodPayload.model_validate(m) for m in methods]

    async def calculate_shipping(self, method_id) -> CartEnvelope:
        response = await self._call("calculate_shipping", self.backend.calculate_shipping, method_id=method_id)
        return CartEnvelope.model_validate(response)

    async def clear(self) -> CartEnvelope:
        return CartEnvelope.model_validate(await self._call("clear", self.backend.clear))

    async def validate(self) -> ValidationReport:
        return ValidationReport.model_validate(await self._call("validate", self.backend.validate))

    async def merge(self, guest_items) -> CartEnvelope:
        response = await self._call("merge", self.backend.merge, guest_items=guest_items)
        return CartEnvelope.model_validate(response)
