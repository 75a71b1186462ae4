"""In-memory storage for tests, configurable to fail like a full or disabled store."""

from storefront.persistence.port import KeyValueStorage, StorageError


class InMemoryStorage(KeyValueStorage):
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.should_fail: bool = False
        self.failure_reason: str = "Storage quota exceeded"
        self.writes: list[tuple[str, str]] = []

    def configure(self, should_fail: bool, failure_reason: str = "Storage quota exceeded") -> None:
        self.should_fail = should_fail
        self.failure_reason = failure_reason

    def get(self, key):
        if self.should_fail:
            raise StorageError(self.failure_reason)
        return self.data.get(key)

    def set(self, key, value):
        if self.should_fail:
            raise StorageError(self.failure_reason)
        self.writes.append((key, value))
        self.data[key] = value

    def remove(self, key):
        if self.should_fail:
            raise StorageError(self.failure_reason)
        self.data.pop(key, None)
