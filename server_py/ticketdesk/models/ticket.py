from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from ticketdesk.core.database import Base, generate_id, utcnow

TICKET_PRIORITIES = ("low", "medium", "high", "urgent")
TICKET_CATEGORIES = ("general", "technical", "billing", "feature")
TICKET_STATUSES = ("open", "in-progress", "resolved", "closed", "canceled")


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(String(32), primary_key=True, default=generate_id)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    priority = Column(String(16), default="medium", nullable=False)
    category = Column(String(16), default="general", nullable=False)
    status = Column(String(16), default="open", nullable=False)
    assigned_to = Column(String(200), nullable=True)
    client_id = Column(String(32), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    company_id = Column(String(32), ForeignKey("companies.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    client = relationship("Client", back_populates="tickets")
    chat_messages = relationship(
        "ChatMessage",
        back_populates="ticket",
        cascade="all, delete-orphan",
    )
