from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketdesk.core.database import get_db
from ticketdesk.core.dependencies import require_super_admin
from ticketdesk.core.identity import Identity
from ticketdesk.schemas.auth import ClientOut
from ticketdesk.services.clients import ClientService

router = APIRouter()


@router.get("/clients", response_model=List[ClientOut])
async def list_clients(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    admin: Identity = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db)
):
    """Список клиентов; ?status=pending|approved|rejected"""
    return await ClientService(db).list(status=status_filter)


async def _change_status(client_id: str, new_status: str, admin: Identity, db: AsyncSession):
    service = ClientService(db)
    client = await service.get_by_id(client_id)
    if not client:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Client not found"
        )
    try:
        return await service.set_status(client, new_status, admin.user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Client is already {new_status}"
        )


@router.put("/clients/{client_id}/approve", response_model=ClientOut)
async def approve_client(
    client_id: str,
    admin: Identity = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db)
):
    return await _change_status(client_id, "approved", admin, db)


@router.put("/clients/{client_id}/reject", response_model=ClientOut)
async def reject_client(
    client_id: str,
    admin: Identity = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db)
):
    return await _change_status(client_id, "rejected", admin, db)
