"""
Element store for nanobanana.

An element is an image saved under an ``@handle`` so prompts can refer to it.
Records live in a SQLite database; every query is scoped to the owning user,
and the image itself is hosted on imgbb (only its URL is stored).
"""

from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from nanobanana.core.config import Config, get_config
from nanobanana.core.imgbb import upload_to_imgbb
from nanobanana.core.prompt import PROMPT_HANDLE_PATTERN, Reference
from nanobanana.core.schemas import (
    ELEMENT_HANDLE_PATTERN,
    CreateElementRequest,
    validate_request,
)
from nanobanana.logging_config import get_logger
from nanobanana.utils.exceptions import NotFoundError, ValidationError

logger = get_logger(__name__)

# Uploads base64 image data, returns the hosted URL
Uploader = Callable[[str], str]


@dataclass
class Element:
    id: str
    user_id: str
    handle: str
    image_url: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Element:
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            handle=row["handle"],
            image_url=row["image_url"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


def normalize_handle(raw: str) -> str:
    """
    Turn user input into a stored handle: trimmed, with a leading "@".

    Raises:
        ValidationError: If the handle is empty or has characters other than
            letters, digits, underscores and hyphens
    """
    trimmed = (raw or "").strip()
    if not trimmed:
        raise ValidationError("Please enter a handle", field="handle")
    handle = trimmed if trimmed.startswith("@") else f"@{trimmed}"
    if not ELEMENT_HANDLE_PATTERN.fullmatch(handle):
        raise ValidationError(
            "Handle must contain only letters, numbers, underscores, and hyphens",
            field="handle",
        )
    return handle


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ElementStore:
    """SQLite-backed element records, scoped per user."""

    def __init__(self, path: str | Path, uploader: Uploader | None = None) -> None:
        self.path = Path(path)
        self._uploader = uploader
        self.init_db()

    @classmethod
    def from_config(cls, config: Config | None = None) -> ElementStore:
        """Open the store at config.elements_db_path, uploading through imgbb with config's key."""
        cfg = config or get_config()
        return cls(
            cfg.elements_db_path,
            uploader=lambda image: upload_to_imgbb(image, config=cfg),
        )

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection; commits on success, always closes."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def init_db(self) -> None:
        with self.connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS element (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    handle TEXT NOT NULL,
                    image_url TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS element_userId_idx ON element (user_id);
                CREATE INDEX IF NOT EXISTS element_handle_idx ON element (handle);
                CREATE UNIQUE INDEX IF NOT EXISTS element_userId_handle_key
                    ON element (user_id, handle);
                """
            )

    def list(self, user_id: str) -> list[Element]:
        """Return the user's elements, newest first."""
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM element WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
        return [Element.from_row(row) for row in rows]

    def get_by_handle(self, user_id: str, handle: str) -> Element | None:
        """Return the user's element with exactly this handle, or None."""
        with self.connect() as conn:
            row = conn.execute(
                "SELECT * FROM element WHERE user_id = ? AND handle = ? "
                "ORDER BY created_at DESC, rowid DESC LIMIT 1",
                (user_id, handle),
            ).fetchone()
        return Element.from_row(row) if row is not None else None

    def handle_exists(self, user_id: str, handle: str) -> bool:
        return self.get_by_handle(user_id, handle) is not None

    def create(
        self,
        user_id: str,
        handle: str,
        base64_image: str,
        uploader: Uploader | None = None,
    ) -> Element:
        """
        Upload an image and store it under a handle for user_id.

        Args:
            user_id: Owner of the new element
            handle: Handle with "@" prefix (see normalize_handle for user input)
            base64_image: Base64 image data or data URL
            uploader: Overrides the store's uploader for this call

        Raises:
            ValidationError: If the request is invalid or the handle is taken
            APIError, NetworkError, RequestTimeoutError: If the upload fails
        """
        request = validate_request(CreateElementRequest, handle=handle, base64_image=base64_image)
        if self.handle_exists(user_id, request.handle):
            raise ValidationError(f"Handle {request.handle} already exists", field="handle")
        if not PROMPT_HANDLE_PATTERN.fullmatch(request.handle):
            logger.warning(
                "Handle %s contains '-'; prompts only match it up to the hyphen", request.handle
            )

        upload = uploader or self._uploader or upload_to_imgbb
        image_url = upload(request.base64_image)

        now = _now()
        element_id = str(uuid.uuid4())
        try:
            with self.connect() as conn:
                conn.execute(
                    """
                    INSERT INTO element (id, user_id, handle, image_url, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (element_id, user_id, request.handle, image_url, now, now),
                )
        except sqlite3.IntegrityError as e:
            # Another create for the same handle committed after the check above
            raise ValidationError(
                f"Handle {request.handle} already exists", field="handle"
            ) from e
        logger.info("Created element handle=%s id=%s", request.handle, element_id)
        return Element(
            id=element_id,
            user_id=user_id,
            handle=request.handle,
            image_url=image_url,
            created_at=datetime.fromisoformat(now),
            updated_at=datetime.fromisoformat(now),
        )

    def delete(self, user_id: str, element_id: str) -> None:
        """
        Delete an element owned by user_id.

        Raises:
            NotFoundError: If no such element exists for this user
        """
        with self.connect() as conn:
            cur = conn.execute(
                "DELETE FROM element WHERE id = ? AND user_id = ?", (element_id, user_id)
            )
            deleted = cur.rowcount
        if deleted == 0:
            raise NotFoundError("Element not found or access denied", record_id=element_id)
        logger.info("Deleted element id=%s", element_id)

    def resolve_references(self, user_id: str, references: Iterable[Reference]) -> list[str]:
        """
        Map references to image URLs in ref_index order.

        Handles with no matching element are skipped, so the result can be
        shorter than the reference list.
        """
        urls: list[str] = []
        for ref in sorted(references, key=lambda r: r.ref_index):
            element = self.get_by_handle(user_id, ref.handle)
            if element is None:
                logger.warning("No element for handle %s; skipping", ref.handle)
                continue
            urls.append(element.image_url)
        return urls
