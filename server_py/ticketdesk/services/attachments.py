from __future__ import annotations

import logging
import re
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePath
from typing import Iterable, Optional

import aiofiles
import aiofiles.os

from ticketdesk.core.config import settings
from ticketdesk.core.database import utcnow
from ticketdesk.core.exceptions import StorageError

logger = logging.getLogger(__name__)

UPLOADS_SEGMENT = "uploads"
_UPLOADS_RE = re.compile(r"uploads/(.+)$", re.IGNORECASE)
_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")
MAX_BASE_NAME_LENGTH = 50


@dataclass
class StoredAttachment:
    stored_name: str
    original_name: str
    mime_type: str
    size_bytes: int
    content_path: str
    uploaded_at: datetime = field(default_factory=utcnow)


def normalize_path(path: str) -> str:
    return path.replace("\\", "/")


def build_attachment_url(content_path: Optional[str], base_url: Optional[str] = None) -> Optional[str]:
    """Absolute URL for a stored attachment.

    Everything after the first ``uploads/`` segment of the path is appended to
    ``<base_url>/uploads/``. A path without that segment is taken as relative
    to the uploads root.
    """
    if not content_path:
        return None
    base = (base_url if base_url is not None else settings.BASE_URL).rstrip("/")
    normalized = normalize_path(content_path)
    match = _UPLOADS_RE.search(normalized)
    relative = match.group(1) if match else normalized.lstrip("/")
    return f"{base}/{UPLOADS_SEGMENT}/{relative}"


def make_stored_name(original_name: str, now_ms: Optional[int] = None) -> str:
    """``<epoch ms>_<random>_<sanitized base name><ext>``, keeping the extension."""
    pure = PurePath(normalize_path(original_name).split("/")[-1])
    ext = _UNSAFE_CHARS_RE.sub("", pure.suffix)
    base = _UNSAFE_CHARS_RE.sub("_", pure.stem).strip("._")[:MAX_BASE_NAME_LENGTH] or "file"
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{now_ms}_{secrets.token_hex(5)}_{base}{ext}"


class AttachmentStore:
    """Writes chat attachments under ``<root>/<client id>/<ticket id>/``."""

    def __init__(self, root: Optional[Path] = None) -> None:
        self.root = Path(root) if root is not None else settings.UPLOADS_DIR

    def _content_path(self, target: Path) -> str:
        relative = target.relative_to(self.root).as_posix()
        return f"{UPLOADS_SEGMENT}/{relative}"

    def resolve(self, content_path: str) -> Path:
        match = _UPLOADS_RE.search(normalize_path(content_path))
        relative = match.group(1) if match else normalize_path(content_path).lstrip("/")
        return self.root / relative

    async def save(
        self,
        content: bytes,
        original_name: str,
        mime_type: str,
        *,
        client_id: str,
        ticket_id: str,
    ) -> StoredAttachment:
        directory = self.root / client_id / ticket_id
        stored_name = make_stored_name(original_name)
        target = directory / stored_name
        try:
            await aiofiles.os.makedirs(directory, exist_ok=True)
            async with aiofiles.open(target, "wb") as out_file:
                await out_file.write(content)
            saved = await aiofiles.os.path.exists(target)
        except OSError as exc:
            logger.error("Failed to write attachment %s: %s", target, exc)
            raise StorageError(f"Failed to save file: {exc.strerror or exc}")
        if not saved:
            raise StorageError("Failed to save file: file was not saved correctly")

        return StoredAttachment(
            stored_name=stored_name,
            original_name=original_name,
            mime_type=mime_type,
            size_bytes=len(content),
            content_path=self._content_path(target),
        )

    async def discard(self, attachments: Iterable[StoredAttachment]) -> None:
        """Remove files written for a message that was never persisted."""
        for attachment in attachments:
            path = self.resolve(attachment.content_path)
            try:
                await aiofiles.os.remove(path)
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Could not remove orphaned attachment %s: %s", path, exc)
