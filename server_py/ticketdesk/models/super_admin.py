from sqlalchemy import Column, String, DateTime

from ticketdesk.core.database import Base, generate_id, utcnow


class SuperAdmin(Base):
    __tablename__ = "super_admins"

    id = Column(String(32), primary_key=True, default=generate_id)
    name = Column(String(200), default="")
    email = Column(String(320), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    @property
    def display_name(self) -> str:
        return self.name or self.email

    @property
    def company_ref(self):
        return None
