from ticketdesk.core.identity import Role, SenderRef
from ticketdesk.services.chat import ChatService, serialize_entry

from factories import make_admin, make_client, make_company, make_ticket


async def test_append_returns_persisted_message_with_sender(db_session, attachment_store):
    company = await make_company(db_session)
    client = await make_client(db_session, name="Alice", company=company)
    ticket = await make_ticket(db_session, client)
    stored = await attachment_store.save(b"%PDF", "invoice.pdf", "application/pdf", client_id=client.id, ticket_id=ticket.id)

    entry = await ChatService(db_session).append(
        ticket_id=ticket.id,
        sender=SenderRef(Role.CLIENT, client.id),
        text="hello",
        attachments=[stored],
    )
    payload = serialize_entry(entry, "http://testserver")

    assert isinstance(payload["id"], int)
    assert payload["ticketId"] == ticket.id
    assert payload["senderRole"] == "Client"
    assert payload["message"] == "hello"
    assert payload["sender"] == {
        "id": client.id,
        "name": "Alice",
        "email": client.email,
        "company": company.id,
    }
    [attachment] = payload["attachments"]
    assert attachment["originalName"] == "invoice.pdf"
    assert attachment["mimeType"] == "application/pdf"
    assert attachment["sizeBytes"] == 4
    assert attachment["contentPath"] == stored.content_path
    assert attachment["url"] == f"http://testserver/{stored.content_path}"


async def test_history_is_ordered_and_resolves_both_roles(db_session):
    client = await make_client(db_session, name="Alice")
    admin = await make_admin(db_session, name="Root")
    ticket = await make_ticket(db_session, client)
    service = ChatService(db_session)

    await service.append(ticket_id=ticket.id, sender=SenderRef(Role.CLIENT, client.id), text="first")
    await service.append(ticket_id=ticket.id, sender=SenderRef(Role.SUPER_ADMIN, admin.id), text="second")
    await service.append(ticket_id=ticket.id, sender=SenderRef(Role.CLIENT, client.id), text="third")

    history = [serialize_entry(e, "http://testserver") for e in await service.history(ticket.id)]

    assert [m["message"] for m in history] == ["first", "second", "third"]
    assert [m["senderRole"] for m in history] == ["Client", "SuperAdmin", "Client"]
    assert history[1]["sender"]["name"] == "Root"
    assert history[1]["sender"]["company"] is None
    assert history[0]["id"] < history[1]["id"] < history[2]["id"]


async def test_history_is_scoped_to_the_ticket(db_session):
    client = await make_client(db_session)
    first = await make_ticket(db_session, client)
    second = await make_ticket(db_session, client)
    service = ChatService(db_session)

    await service.append(ticket_id=first.id, sender=SenderRef(Role.CLIENT, client.id), text="a")

    assert len(await service.history(first.id)) == 1
    assert await service.history(second.id) == []


async def test_attachment_url_is_computed_on_read(db_session, attachment_store):
    client = await make_client(db_session)
    ticket = await make_ticket(db_session, client)
    stored = await attachment_store.save(b"img", "a.png", "image/png", client_id=client.id, ticket_id=ticket.id)
    service = ChatService(db_session)
    await service.append(ticket_id=ticket.id, sender=SenderRef(Role.CLIENT, client.id), text="", attachments=[stored])

    [entry] = await service.history(ticket.id)
    old = serialize_entry(entry, "http://old.example")["attachments"][0]["url"]
    new = serialize_entry(entry, "https://new.example")["attachments"][0]["url"]

    assert old.startswith("http://old.example/uploads/")
    assert new.startswith("https://new.example/uploads/")
    assert serialize_entry(entry)["message"] == ""


async def test_missing_sender_is_rendered_without_profile(db_session):
    client = await make_client(db_session)
    admin = await make_admin(db_session)
    ticket = await make_ticket(db_session, client)
    service = ChatService(db_session)
    await service.append(ticket_id=ticket.id, sender=SenderRef(Role.SUPER_ADMIN, admin.id), text="bye")

    await db_session.delete(admin)
    await db_session.commit()

    [entry] = await service.history(ticket.id)
    payload = serialize_entry(entry, "http://testserver")
    assert payload["sender"] == {"id": admin.id, "name": None, "email": None, "company": None}
