"""Remote cart service port (abstract interface).

Defines the contract every cart service adapter implements, so the sync
controller can run against the in-memory FakeCartService in tests and the
HttpCartService in production without any change.

Every call returns the service's canonical ``CartEnvelope`` or raises
``CartServiceError`` (the service answered with an error, or with a body
that does not match the contract) or ``CartServiceUnavailable`` (it could
not be reached).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class CartServiceError(Exception):
    """The cart service rejected a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CartServiceUnavailable(CartServiceError):
    """The cart service could not be reached or timed out."""


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one controller operation."""

    success: bool
    operation: str
    error: str | None = None


class CartService(ABC):
    """Abstract remote cart service."""

    @abstractmethod
    async def get_cart(self):
        """Fetch the full canonical cart."""
        ...

    @abstractmethod
    async def add_item(
        self,
        product_id: str,
        variant_id: str | None,
        quantity: int,
        customizations: dict | None = None,
    ):
        ...

    @abstractmethod
    async def update_item(self, item_id: str, quantity: int):
        ...

    @abstractmethod
    async def remove_item(self, item_id: str):
        ...

    @abstractmethod
    async def update_items(self, updates: list[dict]):
        """Set several quantities in one request; each update has ``item_id`` and ``quantity``."""
        ...

    @abstractmethod
    async def remove_items(self, item_ids: list[str]):
        ...

    @abstractmethod
    async def update_gift_wrap(self, item_id: str, enabled: bool, message: str | None = None):
        ...

    @abstractmethod
    async def apply_coupon(self, code: str):
        """Validate a coupon code and attach it; the envelope carries ``coupon``."""
        ...

    @abstractmethod
    async def remove_coupon(self, coupon_id: str):
        ...

    @abstractmethod
    async def get_shipping_methods(self):
        """List the shipping methods on offer as ``ShippingMethodPayload`` objects."""
        ...

    @abstractmethod
    async def calculate_shipping(self, method_id: str):
        ...

    @abstractmethod
    async def clear(self):
        ...

    @abstractmethod
    async def validate(self):
        """Check stock and prices; returns a ``ValidationReport``."""
        ...

    @abstractmethod
    async def merge(self, guest_items: list[dict]):
        """Merge a guest cart into the signed-in customer's cart."""
        ...
