from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import asc, select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketdesk.core.identity import Role, Sender, SenderRef
from ticketdesk.models.chat_message import ChatAttachment, ChatMessage
from ticketdesk.models.client import Client
from ticketdesk.models.super_admin import SuperAdmin
from ticketdesk.models.ticket import Ticket
from ticketdesk.schemas.chat import ValidatedMessage
from ticketdesk.services.attachments import AttachmentStore, StoredAttachment, build_attachment_url
from ticketdesk.services.validation import sanitize_text

_SENDER_MODELS = {
    Role.CLIENT: Client,
    Role.SUPER_ADMIN: SuperAdmin,
}


@dataclass(frozen=True)
class ChatEntry:
    """A persisted message together with its resolved sender (None if the sender is gone)."""

    message: ChatMessage
    sender: Optional[Sender]


class ChatService:
    """Persists ticket chat messages and reads back their history."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def load_senders(self, refs: Iterable[SenderRef]) -> Dict[SenderRef, Sender]:
        """Resolve sender references with one query per role."""
        ids_by_role: Dict[Role, set] = {}
        for ref in refs:
            ids_by_role.setdefault(ref.role, set()).add(ref.id)

        resolved: Dict[SenderRef, Sender] = {}
        for role, ids in ids_by_role.items():
            model = _SENDER_MODELS[role]
            result = await self.db.execute(select(model).where(model.id.in_(ids)))
            for row in result.scalars():
                resolved[SenderRef(role=role, id=row.id)] = row
        return resolved

    async def append(
        self,
        *,
        ticket_id: str,
        sender: SenderRef,
        text: Optional[str],
        attachments: Sequence[StoredAttachment] = (),
    ) -> ChatEntry:
        # между commit и возвратом не должно быть await: вызывающий рассылает сразу
        senders = await self.load_senders([sender])

        message = ChatMessage(
            ticket_id=ticket_id,
            sender_id=sender.id,
            sender_role=sender.role.value,
            text=text or None,
        )
        message.attachments = [
            ChatAttachment(
                position=position,
                stored_name=stored.stored_name,
                original_name=stored.original_name,
                mime_type=stored.mime_type,
                size_bytes=stored.size_bytes,
                content_path=stored.content_path,
                uploaded_at=stored.uploaded_at,
            )
            for position, stored in enumerate(attachments)
        ]
        self.db.add(message)
        await self.db.flush()
        await self.db.refresh(message)
        await self.db.commit()
        return ChatEntry(message=message, sender=senders.get(sender))

    async def post(
        self,
        ticket: Ticket,
        sender: SenderRef,
        message: ValidatedMessage,
        store: AttachmentStore,
    ) -> ChatEntry:
        """Escape the text, store attachments and append the message.

        Files already written are removed if any later step fails, so an
        aborted message leaves neither a row nor files behind.
        """
        stored: List[StoredAttachment] = []
        try:
            for upload in message.attachments:
                stored.append(await store.save(
                    upload.content,
                    upload.name,
                    upload.type,
                    client_id=ticket.client_id,
                    ticket_id=ticket.id,
                ))
            return await self.append(
                ticket_id=ticket.id,
                sender=sender,
                text=sanitize_text(message.text),
                attachments=stored,
            )
        except Exception:
            await store.discard(stored)
            raise

    async def history(self, ticket_id: str) -> List[ChatEntry]:
        """All messages of a ticket, oldest first."""
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.ticket_id == ticket_id)
            .order_by(asc(ChatMessage.created_at), asc(ChatMessage.id))
        )
        result = await self.db.execute(stmt)
        messages = list(result.scalars())
        senders = await self.load_senders(m.sender_ref for m in messages)
        return [ChatEntry(message=m, sender=senders.get(m.sender_ref)) for m in messages]


def serialize_attachment(attachment: ChatAttachment, base_url: Optional[str] = None) -> dict:
    return {
        "storedName": attachment.stored_name,
        "originalName": attachment.original_name,
        "mimeType": attachment.mime_type,
        "sizeBytes": attachment.size_bytes,
        "contentPath": attachment.content_path,
        "uploadedAt": attachment.uploaded_at.isoformat(),
        # URL всегда вычисляется заново, в БД хранится только путь
        "url": build_attachment_url(attachment.content_path, base_url),
    }


def serialize_entry(entry: ChatEntry, base_url: Optional[str] = None) -> dict:
    """Преобразует сообщение с отправителем в JSON-совместимый словарь."""
    message, sender = entry.message, entry.sender
    if sender is not None:
        sender_payload = {
            "id": sender.id,
            "name": sender.display_name,
            "email": sender.email,
            "company": sender.company_ref,
        }
    else:
        sender_payload = {"id": message.sender_id, "name": None, "email": None, "company": None}

    return {
        "id": message.id,
        "ticketId": message.ticket_id,
        "sender": sender_payload,
        "senderRole": message.sender_role,
        "message": message.text or "",
        "attachments": [serialize_attachment(a, base_url) for a in message.attachments],
        "createdAt": message.created_at.isoformat(),
    }
