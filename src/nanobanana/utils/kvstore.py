"""
File-backed key-value storage for nanobanana.

A single JSON object on disk maps fixed string keys to JSON values. Every
operation re-reads the file, so the latest write wins; there is no locking,
and two processes writing the same key can overwrite each other.
"""

import json
from pathlib import Path
from typing import Any

from nanobanana.logging_config import get_logger

logger = get_logger(__name__)


def read_json(path: Path, default: Any) -> Any:
    """Return parsed JSON from path, or default if the file is missing or unreadable."""
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable store file path=%s error=%s", path, e)
        return default


def write_json(path: Path, payload: Any) -> None:
    """Write payload as JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


class KeyValueStore:
    """JSON file holding a flat mapping of string keys to JSON values."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, Any]:
        data = read_json(self.path, {})
        return data if isinstance(data, dict) else {}

    def get_item(self, key: str) -> Any | None:
        """Return the stored value for key, or None."""
        return self._load().get(key)

    def set_item(self, key: str, value: Any) -> None:
        """Store value under key (read-modify-write of the whole file)."""
        data = self._load()
        data[key] = value
        write_json(self.path, data)

    def remove_item(self, key: str) -> None:
        """Remove key if present."""
        data = self._load()
        if key in data:
            del data[key]
            write_json(self.path, data)
