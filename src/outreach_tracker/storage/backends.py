"""Key/value persistence for the store's collections.

Each key holds one collection serialized as a JSON array. A missing or
unreadable entry loads as None so the store can fall back to its defaults.
"""

import json
import logging
from pathlib import Path
from typing import Protocol

from outreach_tracker.exceptions import StorageError

logger = logging.getLogger(__name__)


class StorageBackend(Protocol):
    """Contract the record store consumes."""

    def load(self, key: str) -> list | None: ...

    def save(self, key: str, items: list) -> None: ...


def _dumps(key: str, items: list) -> str:
    try:
        return json.dumps(items, ensure_ascii=False, indent=2)
    except (TypeError, ValueError) as e:
        raise StorageError(key, f"Serialization failed: {e}") from e


def _loads(key: str, text: str) -> list | None:
    try:
        data = json.loads(text)
    except ValueError as e:
        logger.error(f"Ignoring unreadable entry '{key}': {e}")
        return None
    if not isinstance(data, list):
        logger.error(f"Ignoring entry '{key}': expected a list, got {type(data).__name__}")
        return None
    return data


class JsonFileStorage:
    """One `<key>.json` file per collection inside a data directory."""

    def __init__(self, data_dir: Path | str):
        self.data_dir = Path(data_dir)

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def load(self, key: str) -> list | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to read {path}: {e}")
            return None
        data = _loads(key, text)
        if data is None:
            self._set_aside(path)
        return data

    def _set_aside(self, path: Path) -> None:
        """Rename an unusable file to `<key>.json.bad` so the next save cannot overwrite it."""
        bad_path = path.with_name(f"{path.name}.bad")
        try:
            path.replace(bad_path)
        except OSError as e:
            logger.error(f"Could not move {path} aside: {e}")
            return
        logger.warning(f"Moved unreadable {path} to {bad_path}; starting from defaults")

    def save(self, key: str, items: list) -> None:
        text = _dumps(key, items)
        path = self._path(key)
        tmp_path = path.with_name(f"{path.name}.tmp")
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(text, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            raise StorageError(key, str(e)) from e


class MemoryStorage:
    """In-process storage holding serialized JSON text, like a browser's local storage."""

    def __init__(self, entries: dict[str, str] | None = None):
        self.entries: dict[str, str] = dict(entries or {})

    def load(self, key: str) -> list | None:
        text = self.entries.get(key)
        if text is None:
            return None
        return _loads(key, text)

    def save(self, key: str, items: list) -> None:
        self.entries[key] = _dumps(key, items)
