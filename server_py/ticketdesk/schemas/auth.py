from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional


# Схема регистрации клиента
class ClientRegister(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(min_length=6)
    phone: str = ""
    company_code: Optional[str] = Field(default=None, alias="companyCode")

    model_config = {"populate_by_name": True}

    @field_validator("name")
    @classmethod
    def clean_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Name is required")
        return cleaned

    @field_validator("company_code")
    @classmethod
    def clean_company_code(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None


# Вход по email и паролю (клиент и суперадмин)
class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ClientOut(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    company_id: Optional[str] = Field(default=None, serialization_alias="companyId")
    company_name: Optional[str] = Field(default=None, serialization_alias="companyName")
    status: str
    created_at: Optional[datetime] = Field(default=None, serialization_alias="createdAt")

    class Config:
        from_attributes = True


# Схема для ответа с токеном
class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    user_type: str
    token: Optional[str] = None
    user: dict
