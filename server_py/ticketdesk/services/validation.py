"""Validation and escaping of chat payloads from the socket and the REST upload."""
from __future__ import annotations

import base64
import binascii
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple

from ticketdesk.core.config import settings
from ticketdesk.core.exceptions import InvalidPayload
from ticketdesk.schemas.chat import AttachmentUpload, ValidatedMessage

_HTML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#x27;"),
    ("/", "&#x2F;"),
)


def sanitize_text(text: Optional[str]) -> str:
    """HTML-escape message text, including quotes and forward slashes."""
    if not text:
        return ""
    for raw, escaped in _HTML_ESCAPES:
        text = text.replace(raw, escaped)
    return text


def _decode_attachment(index: int, raw: Any, max_bytes: int, allowed_types: Iterable[str]) -> AttachmentUpload:
    if not isinstance(raw, Mapping):
        raise InvalidPayload(f"Attachment {index} must be an object")

    name, mime_type, data = raw.get("name"), raw.get("type"), raw.get("data")
    if not isinstance(name, str) or not name.strip():
        raise InvalidPayload(f"Attachment {index} must have a valid name")
    if not isinstance(mime_type, str) or not mime_type.strip():
        raise InvalidPayload(f"Attachment {index} must have a valid MIME type")
    if not isinstance(data, str) or not data:
        raise InvalidPayload(f"Attachment {index} must have valid base64 data")

    mime_type = _check_type(index, mime_type, allowed_types)

    try:
        content = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidPayload(f"Attachment {index} has invalid base64 data")
    if not content:
        raise InvalidPayload(f"Attachment {index} has invalid base64 data")
    _check_size(index, content, max_bytes)

    return AttachmentUpload(name=name.strip(), type=mime_type, content=content)


def _check_type(index: int, mime_type: str, allowed_types: Iterable[str]) -> str:
    mime_type = mime_type.strip().lower()
    if mime_type not in allowed_types:
        raise InvalidPayload(f"Attachment {index} has unsupported file type {mime_type}")
    return mime_type


def _check_size(index: int, content: bytes, max_bytes: int) -> None:
    if len(content) > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise InvalidPayload(f"Attachment {index} exceeds maximum size of {limit_mb}MB")


def validate_message_payload(
    payload: Mapping[str, Any],
    *,
    max_bytes: Optional[int] = None,
    allowed_types: Optional[Iterable[str]] = None,
) -> ValidatedMessage:
    """Check an inbound ``send_message`` payload and decode its attachments.

    ``payload`` uses the wire names: ``message`` for the text and
    ``attachments`` for a list of ``{name, type, data}`` objects with
    base64 ``data``.
    """
    if max_bytes is None:
        max_bytes = settings.CHAT_MAX_ATTACHMENT_BYTES
    allowed = frozenset(allowed_types if allowed_types is not None else settings.CHAT_ALLOWED_MIME_TYPES)

    text = payload.get("message")
    if text is not None and not isinstance(text, str):
        raise InvalidPayload("Message must be a string")
    text = (text or "").strip()

    raw_attachments = payload.get("attachments")
    if raw_attachments is None:
        raw_attachments = []
    if not isinstance(raw_attachments, list):
        raise InvalidPayload("Attachments must be an array")

    if not text and not raw_attachments:
        raise InvalidPayload("Message or at least one file is required")

    attachments = tuple(
        _decode_attachment(index, raw, max_bytes, allowed)
        for index, raw in enumerate(raw_attachments)
    )
    return ValidatedMessage(text=text, attachments=attachments)


def validate_uploaded_message(
    text: Optional[str],
    files: Sequence[Tuple[str, str, bytes]],
    *,
    max_bytes: Optional[int] = None,
    allowed_types: Optional[Iterable[str]] = None,
    max_files: Optional[int] = None,
) -> ValidatedMessage:
    """Same rules for a multipart post; ``files`` holds (filename, content type, bytes)."""
    if max_bytes is None:
        max_bytes = settings.CHAT_MAX_ATTACHMENT_BYTES
    if max_files is None:
        max_files = settings.CHAT_MAX_UPLOAD_FILES
    allowed = frozenset(allowed_types if allowed_types is not None else settings.CHAT_ALLOWED_MIME_TYPES)

    text = (text or "").strip()
    if not text and not files:
        raise InvalidPayload("Message or at least one file is required")
    if len(files) > max_files:
        raise InvalidPayload(f"At most {max_files} files can be attached")

    attachments = []
    for index, (name, mime_type, content) in enumerate(files):
        if not name or not name.strip():
            raise InvalidPayload(f"Attachment {index} must have a valid name")
        if not mime_type or not mime_type.strip():
            raise InvalidPayload(f"Attachment {index} must have a valid MIME type")
        mime_type = _check_type(index, mime_type, allowed)
        _check_size(index, content, max_bytes)
        attachments.append(AttachmentUpload(name=name.strip(), type=mime_type, content=content))
    return ValidatedMessage(text=text, attachments=tuple(attachments))
