from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from ticketdesk.core.database import utcnow
from ticketdesk.models.client import CLIENT_STATUSES, Client


class ClientService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, client_id: str) -> Client | None:
        """Получение клиента по ID"""
        result = await self.db.execute(select(Client).where(Client.id == client_id))
        return result.scalar_one_or_none()

    async def list(self, status: Optional[str] = None) -> List[Client]:
        """Список клиентов, новые первыми; можно отфильтровать по статусу"""
        stmt = select(Client).order_by(Client.created_at.desc())
        if status in CLIENT_STATUSES:
            stmt = stmt.where(Client.status == status)
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def set_status(self, client: Client, status: str, admin_id: str) -> Client:
        """Одобрение или отклонение заявки клиента"""
        if status not in CLIENT_STATUSES:
            raise ValueError("invalid_status")
        if client.status == status:
            raise ValueError(f"already_{status}")
        client.status = status
        client.approved_by = admin_id
        client.approved_at = utcnow()

        await self.db.commit()
        await self.db.refresh(client)
        return client
