"""Sync controller: bridges optimistic local edits and the remote cart service.

Every operation applies the matching CartStore mutation first, so the UI
updates immediately, then awaits the service. A successful response carries
the canonical cart, which supersedes local state through ``replace_all``.
A failed addition is reverted; any other failure leaves the optimistic state
in place, records a message on the store and waits for the next resync.

Calls are not queued. Several may be in flight at once and whichever
response is reconciled last wins.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import structlog

from storefront.cart.cart import as_utc
from storefront.cart.store import CartStore
from storefront.config import get_settings
from storefront.sync import get_cart_service
from storefront.sync.port import CartService, CartServiceError, SyncResult

logger = structlog.get_logger(__name__)


class SyncController:
    def __init__(self, store: CartStore, service: CartService | None = None, sync_interval: float | None = None):
        self.store = store
        self.service = service or get_cart_service()
        self.sync_interval = sync_interval or get_settings().sync_interval_seconds
        self.last_validation = None
        self._auto_sync_task: asyncio.Task | None = None

    # -------------------------------------------------------------------
    # Item operations
    # -------------------------------------------------------------------
    async def add_item(self, product_id, variant_id=None, quantity=1, unit_price=0.0, **details) -> SyncResult:
        item_id = self.store.add_or_increment(product_id, variant_id, quantity, unit_price, **details)
        return await self._call(
            "add_item",
            lambda: self.service.add_item(product_id, variant_id, quantity, details.get("customizations")),
            on_failure=lambda: self.store.revert_addition(item_id, quantity),
        )

    async def update_quantity(self, item_id, quantity) -> SyncResult:
        self.store.set_quantity(item_id, quantity)
        return await self._call(
            "update_quantity",
            lambda: self.service.update_item(str(item_id), max(quantity, 0)),
        )

    async def remove_item(self, item_id) -> SyncResult:
        self.store.remove(item_id)
        return await self._call("remove_item", lambda: self.service.remove_item(str(item_id)))

    async def update_items(self, quantities: dict) -> SyncResult:
        """Set several quantities at once: one request, one reconciliation."""
        if not quantities:
            return SyncResult(success=True, operation="update_items")

        for item_id, quantity in quantities.items():
            self.store.set_quantity(item_id, quantity)
        updates = [
            {"item_id": str(item_id), "quantity": max(quantity, 0)} for item_id, quantity in quantities.items()
        ]
        return await self._call("update_items", lambda: self.service.update_items(updates))

    async def remove_items(self, item_ids) -> SyncResult:
        item_ids = [str(item_id) for item_id in item_ids]
        if not item_ids:
            return SyncResult(success=True, operation="remove_items")

        for item_id in item_ids:
            self.store.remove(item_id)
        return await self._call("remove_items", lambda: self.service.remove_items(item_ids))

    async def restore_item(self, item_id) -> SyncResult:
        """Undo a removal locally and add the line back on the service."""
        if not self.store.restore(item_id):
            return SyncResult(success=False, operation="restore_item", error="Item can no longer be restored")

        item = self.store.find_item(item_id)
        return await self._call(
            "restore_item",
            lambda: self.service.add_item(
                str(item.product_id), item.variant_id, item.quantity, item.customization_data or None
            ),
            on_failure=lambda: self.store.revert_addition(item_id, item.quantity),
        )

    async def update_gift_wrap(self, item_id, enabled, cost=0.0, message=None) -> SyncResult:
        self.store.update_gift_wrap(item_id, enabled, cost, message)
        return await self._call(
            "update_gift_wrap",
            lambda: self.service.update_gift_wrap(str(item_id), enabled, message),
        )

    async def clear_cart(self) -> SyncResult:
        self.store.clear()
        return await self._call("clear_cart", self.service.clear)

    # -------------------------------------------------------------------
    # Coupons and shipping
    # -------------------------------------------------------------------
    async def apply_coupon(self, code: str, as_of: datetime | None = None) -> SyncResult:
        """Apply a coupon once the service confirms it; its terms only exist server-side."""
        code = (code or "").strip()
        if not code:
            self.store.coupon_error = "Please enter a coupon code"
            return SyncResult(success=False, operation="apply_coupon", error=self.store.coupon_error)

        self.store.coupon_error = None
        try:
            with self.store.request_in_flight():
                envelope = await self.service.apply_coupon(code)
        except CartServiceError as exc:
            logger.warning("Coupon rejected", code=code, error=exc.message, status_code=exc.status_code)
            self.store.coupon_error = exc.message
            return SyncResult(success=False, operation="apply_coupon", error=exc.message)

        coupon = envelope.coupon
        if coupon is not None and coupon.expires_at and as_utc(coupon.expires_at) <= (as_of or datetime.now(UTC)):
            logger.warning("Coupon returned already expired", code=code, coupon_id=coupon.id)
            self.store.coupon_error = "This coupon has expired"
            return SyncResult(success=False, operation="apply_coupon", error=self.store.coupon_error)

        self._reconcile(envelope)
        if coupon is not None and self.store.cart.find_coupon(coupon.id) is None:
            self.store.apply_coupon(coupon.model_dump(), as_of=as_of)

        logger.info("Coupon applied", code=code, cart_id=str(self.store.cart.id))
        return SyncResult(success=True, operation="apply_coupon")

    async def remove_coupon(self, coupon_id) -> SyncResult:
        self.store.remove_coupon(coupon_id)
        return await self._call(
            "remove_coupon",
            lambda: self.service.remove_coupon(str(coupon_id)),
            error_attr="coupon_error",
        )

    async def load_shipping_methods(self) -> SyncResult:
        """Fetch the shipping methods on offer and hand them to the store."""
        self.store.error = None
        try:
            with self.store.request_in_flight():
                methods = await self.service.get_shipping_methods()
        except CartServiceError as exc:
            logger.warning("Could not load shipping methods", error=exc.message, status_code=exc.status_code)
            self.store.error = exc.message
            return SyncResult(success=False, operation="load_shipping_methods", error=exc.message)

        self.store.set_shipping_methods([m.model_dump() for m in methods])
        return SyncResult(success=True, operation="load_shipping_methods")

    async def select_shipping_method(self, method_id) -> SyncResult:
        self.store.select_shipping_method(method_id)
        return await self._call("select_shipping_method", lambda: self.service.calculate_shipping(str(method_id)))

    # -------------------------------------------------------------------
    # Whole-cart operations
    # -------------------------------------------------------------------
    async def sync_cart(self) -> SyncResult:
        """Full resync from ``GET /cart``."""
        return await self._call("sync_cart", self.service.get_cart)

    async def validate_cart(self) -> SyncResult:
        """Ask the service to check stock and prices.

        Re-priced lines supersede the local ones; lines with errors are
        flagged until they change.
        """
        try:
            with self.store.request_in_flight():
                report = await self.service.validate()
        except CartServiceError as exc:
            logger.warning("Cart validation failed", error=exc.message)
            self.store.error = exc.message
            return SyncResult(success=False, operation="validate_cart", error=exc.message)

        self.last_validation = report
        if report.updated_items:
            updated = {i.id: i.model_dump() for i in report.updated_items}
            self.store.replace_all(items=[updated.get(str(i.id), i.snapshot()) for i in self.store.items])
        self.store.flag_inventory_issues([issue.item_id for issue in report.errors])

        if report.errors:
            message = "; ".join(issue.message for issue in report.errors)
            logger.info("Cart has inventory issues", cart_id=str(self.store.cart.id), issue_count=len(report.errors))
            return SyncResult(success=False, operation="validate_cart", error=message)
        return SyncResult(success=True, operation="validate_cart")

    async def merge_guest_cart(self) -> SyncResult:
        """Send the persisted guest cart to the service after sign-in."""
        persistence = self.store.persistence
        guest_items = persistence.load() if persistence is not None else None
        if not guest_items:
            return SyncResult(success=True, operation="merge_guest_cart")

        result = await self._call("merge_guest_cart", lambda: self.service.merge(guest_items))
        if result.success:
            persistence.clear()
            logger.info("Guest cart merged", item_count=len(guest_items))
        return result

    # -------------------------------------------------------------------
    # Periodic resync
    # -------------------------------------------------------------------
    def needs_sync(self, as_of: datetime | None = None) -> bool:
        last = self.store.last_synced_at
        if last is None:
            return True
        return (as_of or datetime.now(UTC)) - last >= timedelta(seconds=self.sync_interval)

    def start_auto_sync(self) -> asyncio.Task:
        """Resync every ``sync_interval`` seconds. Must be called with a running loop."""
        if self._auto_sync_task is None or self._auto_sync_task.done():
            self._auto_sync_task = asyncio.get_running_loop().create_task(self._auto_sync())
        return self._auto_sync_task

    def stop_auto_sync(self) -> None:
        if self._auto_sync_task is not None:
            self._auto_sync_task.cancel()
            self._auto_sync_task = None

    async def _auto_sync(self) -> None:
        while True:
            await asyncio.sleep(self.sync_interval)
            await self.sync_cart()

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    async def _call(self, operation, request, on_failure=None, error_attr="error") -> SyncResult:
        setattr(self.store, error_attr, None)
        try:
            with self.store.request_in_flight():
                envelope = await request()
        except CartServiceError as exc:
            logger.warning(
                "Cart sync failed",
                operation=operation,
                error=exc.message,
                status_code=exc.status_code,
            )
            if on_failure is not None:
                on_failure()
            setattr(self.store, error_attr, exc.message)
            return SyncResult(success=False, operation=operation, error=exc.message)

        self._reconcile(envelope)
        return SyncResult(success=True, operation=operation)

    def _reconcile(self, envelope) -> None:
        self.store.replace_all(**envelope.replacement())
        self.store.last_synced_at = datetime.now(UTC)
        logger.debug("Cart reconciled", cart_id=str(self.store.cart.id), item_count=len(envelope.items))
