from typing import Optional

from jose import ExpiredSignatureError, JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from ticketdesk.core.exceptions import AccountInactive, AuthError
from ticketdesk.core.identity import Identity, Role
from ticketdesk.core.security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)
from ticketdesk.models.client import Client
from ticketdesk.models.company import Company
from ticketdesk.models.super_admin import SuperAdmin


class AuthService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_client_by_id(self, client_id: str) -> Client | None:
        result = await self.db.execute(select(Client).where(Client.id == client_id))
        return result.scalar_one_or_none()

    async def get_super_admin_by_id(self, admin_id: str) -> SuperAdmin | None:
        result = await self.db.execute(select(SuperAdmin).where(SuperAdmin.id == admin_id))
        return result.scalar_one_or_none()

    async def authenticate_token(self, raw_token: Optional[str]) -> Identity:
        """Resolve a bearer token to the Client or SuperAdmin it was issued for.

        Clients are looked up first; a Client that is not approved yet (or was
        rejected) is refused with ``AccountInactive``.
        """
        if not raw_token or not isinstance(raw_token, str):
            raise AuthError("No token provided")

        token = raw_token.strip()
        if token.lower().startswith("bearer "):
            token = token[7:].strip()

        try:
            payload = decode_access_token(token)
        except ExpiredSignatureError:
            raise AuthError("Token expired")
        except JWTError:
            raise AuthError("Invalid token")

        subject = payload.get("sub")
        if not subject or not isinstance(subject, str):
            raise AuthError("Invalid token format")

        client = await self.get_client_by_id(subject)
        if client is not None:
            if not client.is_approved:
                raise AccountInactive()
            return Identity.from_sender(client, Role.CLIENT)

        admin = await self.get_super_admin_by_id(subject)
        if admin is not None:
            return Identity.from_sender(admin, Role.SUPER_ADMIN)

        raise AuthError("User not found")

    async def register_client(
        self,
        *,
        name: str,
        email: str,
        password: str,
        phone: str = "",
        company_code: Optional[str] = None,
    ) -> Client:
        """Создает клиента в статусе pending; токен выдается только после одобрения."""
        existing = await self.db.execute(select(Client.id).where(Client.email == email))
        if existing.scalar_one_or_none() is not None:
            raise ValueError("email_taken")

        company = None
        if company_code:
            result = await self.db.execute(select(Company).where(Company.company_code == company_code))
            company = result.scalar_one_or_none()
            if company is None:
                raise LookupError("company_not_found")

        client = Client(
            name=name,
            email=email,
            hashed_password=get_password_hash(password),
            phone=phone,
            company_id=company.id if company else None,
            company_name=company.name if company else "",
            status="pending",
        )
        self.db.add(client)
        await self.db.commit()
        await self.db.refresh(client)
        return client

    async def login_client(self, email: str, password: str) -> Client:
        result = await self.db.execute(select(Client).where(Client.email == email))
        client = result.scalar_one_or_none()
        if client is None or not verify_password(password, client.hashed_password):
            raise AuthError("Invalid email or password")
        if not client.is_approved:
            if client.status == "pending":
                raise AccountInactive("Your account is pending approval")
            raise AccountInactive("Your account has been rejected")
        return client

    async def login_super_admin(self, email: str, password: str) -> SuperAdmin:
        result = await self.db.execute(select(SuperAdmin).where(SuperAdmin.email == email))
        admin = result.scalar_one_or_none()
        if admin is None or not verify_password(password, admin.hashed_password):
            raise AuthError("Invalid email or password")
        return admin

    def create_token(self, user_id: str) -> str:
        """Создает JWT токен для пользователя"""
        return create_access_token(data={"sub": user_id})
