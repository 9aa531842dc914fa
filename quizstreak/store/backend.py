"""Key/value storage backends holding the serialized state document."""

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class StorageBackend(Protocol):
    """Minimal async-storage style interface: one string value per key."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...


class MemoryStorage:
    """In-process storage, used by tests and throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.items: dict[str, str] = dict(initial or {})
        self.write_count = 0

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value
        self.write_count += 1

    def get_json(self, key: str):
        """Decode the stored value for `key`, or None."""
        raw = self.items.get(key)
        return json.loads(raw) if raw is not None else None


class JsonFileStorage:
    """Stores each key as `<directory>/<key>.json`, replaced atomically."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        """
        Map a storage key to a file path.

        Args:
            key: Storage key; characters unsafe in filenames are replaced

        Returns:
            Path of the backing file
        """
        safe_key = re.sub(r"[^A-Za-z0-9._-]", "_", key).strip("._") or "data"
        return self.directory / f"{safe_key}.json"

    def get_item(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)

        # Write to a sibling temp file first so a crash never leaves half a document
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=path.stem, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug("Wrote %d bytes to %s", len(value), path)
