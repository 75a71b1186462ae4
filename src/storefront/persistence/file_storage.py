"""JSON-file storage: one file per key under a directory."""

import re
from pathlib import Path

from storefront.persistence.port import KeyValueStorage, StorageError


class FileStorage(KeyValueStorage):
    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{re.sub(r'[^A-Za-z0-9_.-]', '_', key)}.json"

    def get(self, key):
        path = self._path(key)
        try:
            return path.read_bytes() if path.exists() else None
        except OSError as e:
            raise StorageError(str(e)) from e

    def set(self, key, value):
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(value, encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise StorageError(str(e)) from e

    def remove(self, key):
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(str(e)) from e
