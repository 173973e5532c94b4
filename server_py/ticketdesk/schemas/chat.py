from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ticketdesk.core.config import settings


class AttachmentUpload(BaseModel):
    """A decoded attachment that passed validation."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


class ValidatedMessage(BaseModel):
    """Outgoing chat message after validation; ``text`` is trimmed, not yet escaped."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    attachments: Tuple[AttachmentUpload, ...] = ()


class TicketRef(BaseModel):
    ticket_id: str = Field(alias="ticketId", min_length=1)

    model_config = {"populate_by_name": True}


class GetMessagesRequest(TicketRef):
    limit: int = Field(default=settings.CHAT_DEFAULT_PAGE_SIZE, ge=0)
    offset: int = Field(default=0, ge=0)


class AttachmentResponse(BaseModel):
    stored_name: str = Field(alias="storedName")
    original_name: str = Field(alias="originalName")
    mime_type: str = Field(alias="mimeType")
    size_bytes: int = Field(alias="sizeBytes")
    content_path: str = Field(alias="contentPath")
    uploaded_at: datetime = Field(alias="uploadedAt")
    url: str

    model_config = {"populate_by_name": True}


class SenderResponse(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None


class ChatMessageResponse(BaseModel):
    id: int
    ticket_id: str = Field(alias="ticketId")
    sender: SenderResponse
    sender_role: str = Field(alias="senderRole")
    message: str
    attachments: List[AttachmentResponse] = []
    created_at: datetime = Field(alias="createdAt")

    model_config = {"populate_by_name": True}
