from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from ticketdesk.core.exceptions import AccessDenied, NotFound
from ticketdesk.core.identity import Identity
from ticketdesk.models.ticket import Ticket


async def authorize_ticket_access(db: AsyncSession, ticket_id, identity: Identity) -> Ticket:
    """Return the ticket if ``identity`` may read and write its chat.

    SuperAdmins see every ticket, a Client only the tickets it owns. The
    check hits the database every time and is never cached.
    """
    if not ticket_id or not isinstance(ticket_id, str):
        raise NotFound()

    result = await db.execute(select(Ticket).where(Ticket.id == ticket_id))
    ticket = result.scalar_one_or_none()
    if ticket is None:
        raise NotFound()

    if identity.is_super_admin:
        return ticket
    if ticket.client_id == identity.user_id:
        return ticket
    raise AccessDenied()
