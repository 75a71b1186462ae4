"""Client-local key/value storage port.

The cart mirrors its item list here so a guest cart survives a restart.
Adapters raise ``StorageError`` when the backing store cannot be used.
"""

from abc import ABC, abstractmethod


class StorageError(Exception):
    """The backing store is unavailable or refused the operation."""


class KeyValueStorage(ABC):
    @abstractmethod
    def get(self, key: str) -> str | bytes | None:
        """Return the stored payload for ``key``, or None when absent.

        Raw bytes are passed through undecoded so a corrupt file is rejected
        by validation instead of by the decoder.
        """
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...
