"""Cart service factory.

The default is the in-process FakeCartService: it runs the same
MockCartBackend the mock HTTP service serves, so a store and controller work
out of the box with no server running. Applications talking to a real cart
service install an HttpCartService once at startup with set_cart_service().
"""

from storefront.sync.port import CartService

_current_service: CartService | None = None


def get_cart_service() -> CartService:
    """Return the current cart service. Defaults to FakeCartService."""
    global _current_service
    if _current_service is None:
        # Imported here: fake_adapter -> mock_service.backend -> sync.schemas
        # would otherwise re-enter this package while it is initializing.
        from storefront.sync.fake_adapter import FakeCartService

        _current_service = FakeCartService()
    return _current_service


def set_cart_service(service: CartService) -> None:
    """Override the active cart service (useful for tests)."""
    global _current_service
    _current_service = service


def reset_cart_service() -> None:
    """Reset to default service."""
    global _current_service
    _current_service = None
