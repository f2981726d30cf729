"""
JSON file store shared by the alias, saved-query and history stores.

Each store owns one file and rewrites it whole on every change. Writes go
through a temporary file in the same directory followed by os.replace, and
read-modify-write cycles are serialized per store object. Concurrent writers
in other processes are not coordinated.
"""

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from database.exceptions import StoreCorruptError

logger = logging.getLogger(__name__)


class JsonFileStore:
    """Whole-file JSON persistence with an injected path."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.RLock()

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[Any]:
        """
        Read and parse the store.

        Returns:
            Parsed JSON value, or None when the file is absent or blank

        Raises:
            StoreCorruptError: If the file holds invalid JSON
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

        if not raw.strip():
            return None

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreCorruptError(self.path, str(e)) from e

    def save(self, data: Any) -> None:
        """Rewrite the whole store atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False, default=str)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
        logger.debug(f"Wrote store {self.path}")

    @contextmanager
    def locked(self) -> Iterator["JsonFileStore"]:
        """Hold the store lock across a read-modify-write cycle."""
        with self._lock:
            yield self


class JsonMappingStore(JsonFileStore):
    """
    Store holding a JSON object of name -> string.

    Used for optional convenience data (aliases, saved queries): reads log
    a corrupt or malformed file as a warning and return it as empty. Writes
    refuse to touch such a file so its content is never overwritten.
    """

    label = "mapping"

    def read_mapping(self) -> dict:
        try:
            data = self.load()
        except StoreCorruptError as e:
            logger.warning(f"Ignoring corrupt {self.label} store: {e}")
            return {}

        if data is None:
            return {}
        if not isinstance(data, dict):
            logger.warning(
                f"Ignoring {self.label} store {self.path}: expected a JSON object, "
                f"got {type(data).__name__}"
            )
            return {}

        mapping = {}
        for key, value in data.items():
            if not isinstance(value, str):
                logger.warning(
                    f"Skipping {self.label} '{key}' in {self.path}: "
                    f"expected a string, got {type(value).__name__}"
                )
                continue
            mapping[key] = value
        return mapping

    def _load_for_write(self) -> dict:
        """Raw mapping to modify; raises instead of discarding unreadable content."""
        data = self.load()
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise StoreCorruptError(
                self.path, f"expected a JSON object, got {type(data).__name__}"
            )
        return data

    def set_item(self, name: str, value: str) -> None:
        """
        Add or replace one entry.

        Raises:
            StoreCorruptError: If the existing file cannot be parsed as an object
        """
        with self.locked():
            mapping = self._load_for_write()
            mapping[name] = value
            self.save(mapping)

    def remove_item(self, name: str) -> bool:
        """
        Remove one entry; returns False when it was not there.

        Raises:
            StoreCorruptError: If the existing file cannot be parsed as an object
        """
        with self.locked():
            mapping = self._load_for_write()
            if name not in mapping:
                return False
            del mapping[name]
            self.save(mapping)
            return True
