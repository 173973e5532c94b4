from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from ticketdesk.core.identity import Identity
from ticketdesk.models.client import Client
from ticketdesk.models.ticket import Ticket


class TicketService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        client: Client,
        *,
        title: str,
        description: str,
        priority: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Ticket:
        """Создание тикета; компания берется из профиля клиента"""
        ticket = Ticket(
            title=title.strip(),
            description=description.strip(),
            priority=priority or "medium",
            category=category or "general",
            status="open",
            client_id=client.id,
            company_id=client.company_id,
        )
        self.db.add(ticket)
        await self.db.commit()
        await self.db.refresh(ticket)
        return ticket

    async def list_for(self, identity: Identity, *, limit: int = 10, offset: int = 0) -> List[Ticket]:
        """Клиент видит только свои тикеты, суперадмин - все"""
        stmt = select(Ticket).order_by(Ticket.created_at.desc()).offset(offset).limit(limit)
        if not identity.is_super_admin:
            stmt = stmt.where(Ticket.client_id == identity.user_id)
        result = await self.db.execute(stmt)
        return list(result.scalars())


def serialize_ticket_created(ticket: Ticket, *, for_admin: bool = False) -> dict:
    payload = {
        "ticketId": ticket.id,
        "title": ticket.title,
        "status": ticket.status,
        "priority": ticket.priority,
        "createdAt": ticket.created_at.isoformat() if ticket.created_at else None,
    }
    if for_admin:
        payload["clientId"] = ticket.client_id
        payload["companyId"] = ticket.company_id
    return payload
