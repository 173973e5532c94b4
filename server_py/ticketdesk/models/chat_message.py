from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from ticketdesk.core.database import Base, utcnow
from ticketdesk.core.identity import Role, SenderRef


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(String(32), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(String(32), nullable=False, index=True)
    sender_role = Column(String(16), nullable=False)  # 'Client' | 'SuperAdmin'
    text = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    ticket = relationship("Ticket", back_populates="chat_messages")
    attachments = relationship(
        "ChatAttachment",
        back_populates="message",
        order_by="ChatAttachment.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def sender_ref(self) -> SenderRef:
        return SenderRef(role=Role(self.sender_role), id=self.sender_id)


class ChatAttachment(Base):
    __tablename__ = "chat_attachments"

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(Integer, ForeignKey("chat_messages.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    stored_name = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    mime_type = Column(String(127), nullable=False)
    size_bytes = Column(Integer, nullable=False)
    # Относительный путь вида uploads/<client>/<ticket>/<file>, всегда с "/"
    content_path = Column(String(1024), nullable=False)
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)

    message = relationship("ChatMessage", back_populates="attachments")
