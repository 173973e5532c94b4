from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from ticketdesk.core.database import get_db
from ticketdesk.core.exceptions import AccountInactive, AuthError
from ticketdesk.core.identity import Identity, Role
from ticketdesk.services.auth import AuthService
from ticketdesk.schemas.auth import ClientOut, ClientRegister, LoginRequest, TokenResponse

router = APIRouter()


def _token_payload(auth_service: AuthService, sender, role: Role) -> dict:
    token = auth_service.create_token(sender.id)
    return {
        "access_token": token,
        "token_type": "bearer",
        "user_id": sender.id,
        "user_type": role.value,
        "token": token,  # Дополнительное поле для совместимости
        "user": Identity.from_sender(sender, role).public(),
    }


@router.post("/client/register", status_code=status.HTTP_201_CREATED)
async def register_client(
    request: ClientRegister,
    db: AsyncSession = Depends(get_db)
):
    """
    Регистрация клиента. Аккаунт создается в статусе pending,
    войти можно только после одобрения суперадмином.
    """
    auth_service = AuthService(db)
    try:
        client = await auth_service.register_client(
            name=request.name,
            email=request.email,
            password=request.password,
            phone=request.phone,
            company_code=request.company_code,
        )
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email is already registered"
        )
    except LookupError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid company code"
        )

    return {
        "ok": True,
        "message": "Registration successful. Please wait for approval.",
        "client": ClientOut.model_validate(client).model_dump(mode="json", by_alias=True),
    }


@router.post("/client/login", response_model=TokenResponse)
async def login_client(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """Вход клиента; pending и rejected аккаунты получают 403"""
    auth_service = AuthService(db)
    try:
        client = await auth_service.login_client(request.email, request.password)
    except AccountInactive as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message)

    return _token_payload(auth_service, client, Role.CLIENT)


@router.post("/superadmin/login", response_model=TokenResponse)
async def login_super_admin(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    auth_service = AuthService(db)
    try:
        admin = await auth_service.login_super_admin(request.email, request.password)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message)

    return _token_payload(auth_service, admin, Role.SUPER_ADMIN)
