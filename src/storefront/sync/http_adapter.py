"""HTTP adapter for the remote cart service.

Talks to the service over httpx. Error responses carry ``{"message": ...}``
and become ``CartServiceError``, as do successful responses whose body is
not JSON or does not match the contract. Transport failures and timeouts
become ``CartServiceUnavailable``.
"""

from collections.abc import Callable
from typing import Any

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from storefront.config import get_settings
from storefront.sync.port import CartService, CartServiceError, CartServiceUnavailable
from storefront.sync.schemas import (
    AddItemRequest,
    ApplyCouponRequest,
    BulkRemoveRequest,
    BulkUpdateRequest,
    CalculateShippingRequest,
    CartEnvelope,
    CartItemPayload,
    ErrorBody,
    GiftWrapRequest,
    MergeRequest,
    QuantityUpdate,
    ShippingMethodPayload,
    UpdateItemRequest,
    ValidationReport,
)

logger = structlog.get_logger(__name__)

MALFORMED_RESPONSE = "Malformed cart service response"

_shipping_methods_adapter = TypeAdapter(list[ShippingMethodPayload])


def _handle_response(response: httpx.Response) -> Any:
    if response.is_success:
        try:
            return response.json()
        except ValueError as e:
            logger.error("Cart service returned a non-JSON body", status_code=response.status_code)
            raise CartServiceError(MALFORMED_RESPONSE, response.status_code) from e

    try:
        message = ErrorBody.model_validate(response.json()).message
    except ValueError:
        message = response.reason_phrase or "Cart service request failed"
    raise CartServiceError(message, response.status_code)


class HttpCartService(CartService):
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.cart_service_url).rstrip("/")
        self.timeout = timeout or settings.cart_service_timeout
        self.headers = headers or {}
        self.transport = transport

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self.headers,
            transport=self.transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        payload: Any = None,
        parse: Callable[[Any], Any] = CartEnvelope.model_validate,
    ):
        try:
            async with self._get_client() as client:
                response = await client.request(method, path, json=payload)
        except httpx.RequestError as e:
            logger.error("Cart service unavailable", method=method, path=path, error=str(e))
            raise CartServiceUnavailable(str(e) or "Cart service is unavailable") from e

        data = _handle_response(response)
        try:
            return parse(data)
        except ValidationError as e:
            logger.error(
                "Cart service response does not match the contract",
                method=method,
                path=path,
                error_count=e.error_count(),
            )
            raise CartServiceError(MALFORMED_RESPONSE, response.status_code) from e

    async def get_cart(self) -> CartEnvelope:
        return await self._request("GET", "/cart")

    async def add_item(self, product_id, variant_id, quantity, customizations=None) -> CartEnvelope:
        body = AddItemRequest(
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
            customizations=customizations,
        )
        return await self._request("POST", "/cart/items", body.model_dump(by_alias=True, exclude_none=True))

    async def update_item(self, item_id, quantity) -> CartEnvelope:
        body = UpdateItemRequest(quantity=quantity)
        return await self._request("PUT", f"/cart/items/{item_id}", body.model_dump(by_alias=True))

    async def remove_item(self, item_id) -> CartEnvelope:
        return await self._request("DELETE", f"/cart/items/{item_id}")

    async def update_items(self, updates) -> CartEnvelope:
        body = BulkUpdateRequest(updates=[QuantityUpdate.model_validate(u) for u in updates])
        return await self._request("PATCH", "/cart/bulk-update", body.model_dump(by_alias=True))

    async def remove_items(self, item_ids) -> CartEnvelope:
        body = BulkRemoveRequest(item_ids=list(item_ids))
        return await self._request("DELETE", "/cart/bulk-remove", body.model_dump(by_alias=True))

    async def update_gift_wrap(self, item_id, enabled, message=None) -> CartEnvelope:
        body = GiftWrapRequest(enabled=enabled, message=message)
        return await self._request(
            "PUT", f"/cart/items/{item_id}/gift-wrap", body.model_dump(by_alias=True, exclude_none=True)
        )

    async def apply_coupon(self, code) -> CartEnvelope:
        body = ApplyCouponRequest(code=code)
        return await self._request("POST", "/cart/coupons", body.model_dump(by_alias=True))

    async def remove_coupon(self, coupon_id) -> CartEnvelope:
        return await self._request("DELETE", f"/cart/coupons/{coupon_id}")

    async def get_shipping_methods(self) -> list[ShippingMethodPayload]:
        return await self._request("GET", "/cart/shipping-methods", parse=_shipping_methods_adapter.validate_python)

    async def calculate_shipping(self, method_id) -> CartEnvelope:
        body = CalculateShippingRequest(shipping_method_id=method_id)
        return await self._request("POST", "/cart/calculate-shipping", body.model_dump(by_alias=True))

    async def clear(self) -> CartEnvelope:
        return await self._request("DELETE", "/cart/clear")

    async def validate(self) -> ValidationReport:
        return await self._request("POST", "/cart/validate", parse=ValidationReport.model_validate)

    async def merge(self, guest_items) -> CartEnvelope:
        body = MergeRequest(guest_items=[CartItemPayload.model_validate(i) for i in guest_items])
        return await self._request(
            "POST", "/cart/merge", body.model_dump(by_alias=True, mode="json", exclude_none=True)
        )
