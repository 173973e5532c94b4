from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional


class TicketCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    priority: Optional[Literal["low", "medium", "high", "urgent"]] = None
    category: Optional[Literal["general", "technical", "billing", "feature"]] = None

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


# Схема для ответа с данными тикета
class TicketResponse(BaseModel):
    id: str
    title: str
    description: str
    priority: str
    category: str
    status: str
    assigned_to: Optional[str] = Field(default=None, serialization_alias="assignedTo")
    client_id: str = Field(serialization_alias="clientId")
    company_id: Optional[str] = Field(default=None, serialization_alias="companyId")
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, serialization_alias="updatedAt")

    class Config:
        from_attributes = True
