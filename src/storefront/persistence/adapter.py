"""Mirrors the cart's item list to client-local storage.

Saves are debounced; loads are validated and a payload that fails
validation is discarded whole. Storage failures never reach the cart: they
are logged and the cart carries on in memory.
"""

import structlog
from pydantic import Field, StrictInt, StrictStr, TypeAdapter, ValidationError

from storefront.config import CartSettings, get_settings
from storefront.persistence.file_storage import FileStorage
from storefront.persistence.port import KeyValueStorage, StorageError
from storefront.persistence.scheduler import DelayedAction
from storefront.sync.schemas import CartItemPayload

logger = structlog.get_logger(__name__)


class PersistedItem(CartItemPayload):
    id: StrictStr
    product_id: StrictStr
    quantity: StrictInt = Field(gt=0)


_items_adapter = TypeAdapter(list[PersistedItem])


class PersistenceAdapter:
    def __init__(
        self,
        storage: KeyValueStorage | None = None,
        key: str | None = None,
        debounce_ms: int | None = None,
        settings: CartSettings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.storage = storage if storage is not None else FileStorage(settings.storage_dir)
        self.key = key or settings.storage_key
        debounce_ms = settings.persist_debounce_ms if debounce_ms is None else debounce_ms
        self._saver = DelayedAction(debounce_ms / 1000, self._write)

    @property
    def has_pending_save(self) -> bool:
        return self._saver.pending

    def schedule_save(self, items: list[dict]) -> None:
        self._saver.schedule(items)

    def flush(self) -> None:
        self._saver.flush()

    def cancel(self) -> None:
        self._saver.cancel()

    def load(self) -> list[dict] | None:
        """Return the saved items as plain dicts, or None if nothing usable is stored."""
        try:
            raw = self.storage.get(self.key)
        except StorageError as e:
            logger.warning("Cart storage unavailable", key=self.key, error=str(e))
            return None

        if raw is None:
            return None

        try:
            items = _items_adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning("Discarding invalid persisted cart", key=self.key, error_count=e.error_count())
            self._remove()
            return None

        return [item.model_dump() for item in items]

    def clear(self) -> None:
        self._saver.cancel()
        self._remove()

    def _write(self, items: list[dict]) -> None:
        payload = _items_adapter.dump_json(
            [PersistedItem.model_validate(i) for i in items],
            by_alias=True,
            exclude_none=True,
        ).decode()
        try:
            self.storage.set(self.key, payload)
        except StorageError as e:
            logger.warning("Could not persist cart", key=self.key, error=str(e))
            return
        logger.debug("Cart persisted", key=self.key, item_count=len(items))

    def _remove(self) -> None:
        try:
            self.storage.remove(self.key)
        except StorageError as e:
            logger.warning("Could not remove persisted cart", key=self.key, error=str(e))
