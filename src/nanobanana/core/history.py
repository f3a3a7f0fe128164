"""
Generation history for nanobanana.

Generated images are kept newest first under a fixed key of a JSON key-value
file, capped at config.history_max_items entries. The file is read and
rewritten on every change without locking: two processes saving at the same
time can drop each other's entry.
"""

import time
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from nanobanana.core.config import DEFAULT_HISTORY_MAX_ITEMS, Config, get_config
from nanobanana.logging_config import get_logger
from nanobanana.utils.kvstore import KeyValueStore

logger = get_logger(__name__)

HISTORY_KEY = "nano-banana-history"


@dataclass
class GeneratedImage:
    id: str
    base64: str
    prompt: str
    resolution: str
    created_at: int  # epoch milliseconds

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GeneratedImage":
        return cls(
            id=str(data["id"]),
            base64=str(data["base64"]),
            prompt=str(data.get("prompt", "")),
            resolution=str(data.get("resolution", "")),
            created_at=int(data.get("created_at", 0)),
        )


def _now_ms() -> int:
    return int(time.time() * 1000)


class HistoryStore:
    """Newest-first list of generated images persisted under HISTORY_KEY."""

    def __init__(self, path: str | Path, max_items: int = DEFAULT_HISTORY_MAX_ITEMS) -> None:
        self._kv = KeyValueStore(path)
        self.max_items = max_items

    @classmethod
    def from_config(cls, config: Config | None = None) -> "HistoryStore":
        cfg = config or get_config()
        return cls(cfg.history_path, max_items=cfg.history_max_items)

    def get(self) -> list[GeneratedImage]:
        """Return stored entries; a missing or corrupt store reads as empty."""
        raw = self._kv.get_item(HISTORY_KEY)
        if not isinstance(raw, list):
            return []
        entries: list[GeneratedImage] = []
        for item in raw:
            try:
                entries.append(GeneratedImage.from_dict(item))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed history entry")
        return entries

    def save(self, base64: str, prompt: str, resolution: str) -> GeneratedImage:
        """Prepend a new entry and trim the list to max_items."""
        entry = GeneratedImage(
            id=str(uuid.uuid4()),
            base64=base64,
            prompt=prompt,
            resolution=resolution,
            created_at=_now_ms(),
        )
        updated = [entry, *self.get()][: self.max_items]
        self._write(updated)
        logger.debug("Saved history entry id=%s total=%d", entry.id, len(updated))
        return entry

    def delete(self, image_id: str) -> None:
        self._write([img for img in self.get() if img.id != image_id])

    def clear(self) -> None:
        self._kv.remove_item(HISTORY_KEY)

    def _write(self, entries: list[GeneratedImage]) -> None:
        self._kv.set_item(HISTORY_KEY, [asdict(img) for img in entries])


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def format_relative_time(timestamp: int, now: int | None = None) -> str:
    """
    Describe an epoch-millisecond timestamp relative to now.

    "just now" under a minute, then minutes, hours and days up to a week;
    older timestamps are shown as a local date (YYYY-MM-DD).
    """
    now = _now_ms() if now is None else now
    diff = now - timestamp

    seconds = diff // 1000
    minutes = diff // (1000 * 60)
    hours = diff // (1000 * 60 * 60)
    days = diff // (1000 * 60 * 60 * 24)

    if seconds < 60:
        return "just now"
    if minutes < 60:
        return _plural(minutes, "minute")
    if hours < 24:
        return _plural(hours, "hour")
    if days < 7:
        return _plural(days, "day")
    return datetime.fromtimestamp(timestamp / 1000).strftime("%Y-%m-%d")
