import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketdesk.core.config import settings
from ticketdesk.core.database import get_db
from ticketdesk.core.dependencies import get_attachment_store, get_chat_hub, get_current_identity, require_client
from ticketdesk.core.exceptions import AccessDenied, InvalidPayload, NotFound, StorageError
from ticketdesk.core.identity import Identity
from ticketdesk.schemas.chat import ChatMessageResponse
from ticketdesk.schemas.ticket import TicketCreate, TicketResponse
from ticketdesk.services.access import authorize_ticket_access
from ticketdesk.services.attachments import AttachmentStore
from ticketdesk.services.auth import AuthService
from ticketdesk.services.chat import ChatService, serialize_entry
from ticketdesk.services.tickets import TicketService
from ticketdesk.services.validation import validate_uploaded_message

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_ticket(db: AsyncSession, ticket_id: str, identity: Identity):
    try:
        return await authorize_ticket_access(db, ticket_id, identity)
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    except AccessDenied as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message)


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    ticket_data: TicketCreate,
    identity: Identity = Depends(require_client),
    db: AsyncSession = Depends(get_db),
    chat_hub=Depends(get_chat_hub),
):
    """Создание тикета клиентом; владелец и суперадмины получают ticket_created"""
    client = await AuthService(db).get_client_by_id(identity.user_id)
    if not client:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Client not found"
        )

    ticket = await TicketService(db).create(
        client,
        title=ticket_data.title,
        description=ticket_data.description,
        priority=ticket_data.priority,
        category=ticket_data.category,
    )
    logger.info("Ticket %s created by client %s", ticket.id, client.id)

    if chat_hub is not None:
        chat_hub.notify_ticket_created(ticket)
    return ticket


@router.get("", response_model=List[TicketResponse])
async def list_tickets(
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """Клиент видит свои тикеты, суперадмин - все"""
    return await TicketService(db).list_for(identity, limit=limit, offset=offset)


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(
    ticket_id: str,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    return await _get_ticket(db, ticket_id, identity)


@router.get("/{ticket_id}/chat", response_model=List[ChatMessageResponse])
async def get_ticket_chat(
    ticket_id: str,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """История чата тикета, та же проверка доступа, что и в сокете"""
    await _get_ticket(db, ticket_id, identity)
    entries = await ChatService(db).history(ticket_id)
    return [serialize_entry(entry, settings.BASE_URL) for entry in entries]


@router.post("/{ticket_id}/chat", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED)
async def post_ticket_chat(
    ticket_id: str,
    message: Optional[str] = Form(default=None),
    files: Optional[List[UploadFile]] = File(default=None),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    store: AttachmentStore = Depends(get_attachment_store),
    chat_hub=Depends(get_chat_hub),
):
    """Сообщение в чат тикета через multipart; участники комнаты получают new_message"""
    ticket = await _get_ticket(db, ticket_id, identity)

    uploads = []
    for upload in files or []:
        uploads.append((upload.filename or "", upload.content_type or "", await upload.read()))

    try:
        validated = validate_uploaded_message(message, uploads)
    except InvalidPayload as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)

    try:
        entry = await ChatService(db).post(ticket, identity.sender_ref, validated, store)
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)
    logger.info("Message %s posted to ticket %s over HTTP", entry.message.id, ticket.id)

    if chat_hub is not None:
        chat_hub.broadcast_message(entry)
    return serialize_entry(entry, settings.BASE_URL)
