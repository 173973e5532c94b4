from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from ticketdesk.core.database import get_db
from ticketdesk.core.exceptions import AccountInactive, AuthError
from ticketdesk.core.identity import Identity, Role
from ticketdesk.services.attachments import AttachmentStore
from ticketdesk.services.auth import AuthService

# Определяем схему безопасности
security = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Identity:
    """
    Dependency для получения клиента или суперадмина из JWT токена.
    Токен проверяется тем же кодом, что и при authenticate в чате.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return await AuthService(db).authenticate_token(credentials.credentials)
    except AccountInactive as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message)
    except AuthError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_client(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.role is not Role.CLIENT:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Client access required")
    return identity


async def require_super_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_super_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="SuperAdmin access required")
    return identity


def get_chat_hub(request: Request):
    """ChatHub, созданный при старте приложения (None до старта)"""
    return getattr(request.app.state, "chat_hub", None)


def get_attachment_store(request: Request) -> AttachmentStore:
    """Хранилище вложений общее с ChatHub, чтобы REST и сокет писали в один каталог"""
    chat_hub = get_chat_hub(request)
    if chat_hub is not None:
        return chat_hub.attachments
    return AttachmentStore()
