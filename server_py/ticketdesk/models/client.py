from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from ticketdesk.core.database import Base, generate_id, utcnow

CLIENT_STATUSES = ("pending", "approved", "rejected")


class Client(Base):
    __tablename__ = "clients"

    id = Column(String(32), primary_key=True, default=generate_id)
    name = Column(String(200), nullable=False)
    email = Column(String(320), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    company_id = Column(String(32), ForeignKey("companies.id", ondelete="SET NULL"), nullable=True, index=True)
    company_name = Column(String(200), default="")
    phone = Column(String(32), default="")
    status = Column(String(16), default="pending", nullable=False)  # pending, approved, rejected
    approved_by = Column(String(32), ForeignKey("super_admins.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    company = relationship("Company", back_populates="clients")
    tickets = relationship("Ticket", back_populates="client", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        return self.name or self.email

    @property
    def company_ref(self):
        return self.company_id

    @property
    def is_approved(self) -> bool:
        return self.status == "approved"
