from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship

from ticketdesk.core.database import Base, generate_id, utcnow


class Company(Base):
    __tablename__ = "companies"

    id = Column(String(32), primary_key=True, default=generate_id)
    name = Column(String(200), unique=True, nullable=False)
    contact_email = Column(String(320), unique=True, nullable=False)
    # Публичный код, по которому клиент указывает компанию при регистрации
    company_code = Column(String(64), unique=True, index=True, nullable=False)
    address = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    clients = relationship("Client", back_populates="company")
