"""Key-value blob stores used to persist loop catalogs.

The engine only needs `load`, `save` and `delete`; any object with those
methods can stand in for the stores here.
"""

import base64
import binascii
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Protocol

from .errors import PersistenceError

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def load(self, key: str) -> Optional[bytes]:
        """Return the blob stored under `key`, or None."""

    def save(self, key: str, data: bytes) -> bool:
        """Store `data` under `key`. Returns False if the write failed."""

    def delete(self, key: str) -> bool:
        """Remove `key`. Returns False if the write failed."""


class MemoryStore:
    """In-process store. Contents are lost when the process exits."""

    def __init__(self, initial: Optional[dict[str, bytes]] = None):
        self._data: dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()

    def load(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def save(self, key: str, data: bytes) -> bool:
        with self._lock:
            self._data[key] = bytes(data)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            self._data.pop(key, None)
        return True

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


class JsonFileStore:
    """
    Store backed by a single JSON file mapping keys to base64 blobs.

    Writes go to a temporary file in the same directory which then replaces
    the original, so a crash never leaves a half-written store behind.
    """

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}

        try:
            raw = self.path.read_bytes()
        except OSError as e:
            raise PersistenceError(f"Cannot read store {self.path}: {e}") from e

        try:
            content = raw.decode("utf-8").strip()
        except UnicodeDecodeError as e:
            raise PersistenceError(f"Store {self.path} is not UTF-8 text: {e}") from e
        if not content:
            return {}

        try:
            data = json.loads(content)
        except (json.JSONDecodeError, RecursionError) as e:
            raise PersistenceError(f"Store {self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"Store {self.path} has invalid structure")
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def load(self, key: str) -> Optional[bytes]:
        """
        Read one blob.

        Raises:
            PersistenceError: If the store file exists but cannot be parsed
        """
        with self._lock:
            encoded = self._read_all().get(key)
        if encoded is None:
            return None
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, TypeError) as e:
            raise PersistenceError(f"Value for {key!r} in {self.path} is not base64") from e

    def save(self, key: str, data: bytes) -> bool:
        with self._lock:
            try:
                contents = self._read_all()
            except PersistenceError as e:
                logger.warning("Overwriting unreadable store %s: %s", self.path, e)
                contents = {}
            contents[key] = base64.b64encode(data).decode("ascii")
            try:
                self._write_all(contents)
            except OSError as e:
                logger.warning("Failed to write store %s: %s", self.path, e)
                return False
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            try:
                contents = self._read_all()
            except PersistenceError as e:
                logger.warning("Resetting unreadable store %s: %s", self.path, e)
                contents = {}
            if key not in contents:
                return True
            del contents[key]
            try:
                self._write_all(contents)
            except OSError as e:
                logger.warning("Failed to write store %s: %s", self.path, e)
                return False
        return True
