import pytest

from ticketdesk.core.exceptions import AccessDenied, NotFound
from ticketdesk.core.identity import Identity, Role
from ticketdesk.services.access import authorize_ticket_access

from factories import make_admin, make_client, make_ticket


async def test_owner_and_super_admin_get_the_ticket(db_session):
    owner = await make_client(db_session)
    admin = await make_admin(db_session)
    ticket = await make_ticket(db_session, owner)

    got = await authorize_ticket_access(db_session, ticket.id, Identity.from_sender(owner, Role.CLIENT))
    assert got.id == ticket.id

    got = await authorize_ticket_access(db_session, ticket.id, Identity.from_sender(admin, Role.SUPER_ADMIN))
    assert got.id == ticket.id


async def test_other_client_is_denied(db_session):
    owner = await make_client(db_session)
    stranger = await make_client(db_session)
    ticket = await make_ticket(db_session, owner)

    with pytest.raises(AccessDenied) as exc_info:
        await authorize_ticket_access(db_session, ticket.id, Identity.from_sender(stranger, Role.CLIENT))
    assert exc_info.value.message == "Access denied to this ticket"


@pytest.mark.parametrize("ticket_id", ["f" * 32, "", None, 123, {"id": "x"}])
async def test_unknown_or_malformed_ticket_id_is_not_found(db_session, ticket_id):
    admin = await make_admin(db_session)

    with pytest.raises(NotFound) as exc_info:
        await authorize_ticket_access(db_session, ticket_id, Identity.from_sender(admin, Role.SUPER_ADMIN))
    assert exc_info.value.message == "Ticket not found"


async def test_access_is_rechecked_every_time(db_session):
    owner = await make_client(db_session)
    ticket = await make_ticket(db_session, owner)
    identity = Identity.from_sender(owner, Role.CLIENT)
    await authorize_ticket_access(db_session, ticket.id, identity)

    await db_session.delete(ticket)
    await db_session.commit()

    with pytest.raises(NotFound):
        await authorize_ticket_access(db_session, ticket.id, identity)
