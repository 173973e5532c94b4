"""End-to-end chat over the real /ws/chat endpoint."""
import pytest
from starlette.websockets import WebSocketDisconnect

from factories import make_admin, make_client, make_ticket, run_seed, token_for


def seed_world():
    async def _seed(db):
        client = await make_client(db, name="Alice")
        admin = await make_admin(db, name="Root")
        ticket = await make_ticket(db, client)
        return client, admin, ticket

    return run_seed(_seed)


def send(ws, event, data=None):
    frame = {"event": event}
    if data is not None:
        frame["data"] = data
    ws.send_json(frame)


def receive(ws, expected_event):
    frame = ws.receive_json()
    assert frame["event"] == expected_event, frame
    return frame.get("data")


def test_client_and_admin_chat_in_a_ticket_room(app_client):
    client, admin, ticket = seed_world()

    with app_client.websocket_connect("/ws/chat") as alice, \
         app_client.websocket_connect("/ws/chat") as root:

        send(alice, "authenticate", {"token": token_for(client)})
        assert receive(alice, "authenticated")["user"]["type"] == "Client"
        send(alice, "join_ticket", {"ticketId": ticket.id})
        assert receive(alice, "joined_ticket")["ticketId"] == ticket.id
        assert len(receive(alice, "online_users")["users"]) == 1

        send(root, "authenticate", {"token": f"Bearer {token_for(admin)}"})
        assert receive(root, "authenticated")["user"]["type"] == "SuperAdmin"
        send(root, "join_ticket", {"ticketId": ticket.id})
        receive(root, "joined_ticket")
        assert len(receive(root, "online_users")["users"]) == 2
        assert receive(alice, "user_joined_ticket")["userId"] == admin.id

        send(root, "send_message", {"ticketId": ticket.id, "message": "How can I help?"})
        for ws in (root, alice):
            message = receive(ws, "new_message")["data"]
            assert message["message"] == "How can I help?"
            assert message["senderRole"] == "SuperAdmin"

        send(alice, "get_messages", {"ticketId": ticket.id})
        loaded = receive(alice, "messages_loaded")
        assert loaded["total"] == 1

        send(alice, "ping")
        assert alice.receive_json() == {"event": "pong"}

    response = app_client.get(
        f"/api/v1/tickets/{ticket.id}/chat",
        headers={"Authorization": f"Bearer {token_for(client)}"},
    )
    assert response.status_code == 200
    assert [m["message"] for m in response.json()] == ["How can I help?"]


def test_malformed_and_unknown_frames_get_error_replies(app_client):
    with app_client.websocket_connect("/ws/chat") as ws:
        ws.send_text("this is not json")
        assert receive(ws, "error")["message"] == "Malformed frame"

        ws.send_json(["event", "ping"])
        assert receive(ws, "error")["message"] == "Malformed frame"

        send(ws, "fly", {})
        assert receive(ws, "error")["message"] == "Unknown event: fly"

        # соединение остается рабочим
        send(ws, "ping")
        assert ws.receive_json() == {"event": "pong"}


def test_unauthenticated_socket_cannot_join(app_client):
    _, _, ticket = seed_world()

    with app_client.websocket_connect("/ws/chat") as ws:
        send(ws, "join_ticket", {"ticketId": ticket.id})
        assert receive(ws, "join_ticket_error") == {"success": False, "message": "User not authenticated"}


def test_leaving_peer_is_announced(app_client):
    client, admin, ticket = seed_world()

    with app_client.websocket_connect("/ws/chat") as alice:
        send(alice, "authenticate", {"token": token_for(client)})
        receive(alice, "authenticated")
        send(alice, "join_ticket", {"ticketId": ticket.id})
        receive(alice, "joined_ticket")
        receive(alice, "online_users")

        with app_client.websocket_connect("/ws/chat") as root:
            send(root, "authenticate", {"token": token_for(admin)})
            receive(root, "authenticated")
            send(root, "join_ticket", {"ticketId": ticket.id})
            receive(root, "joined_ticket")
            receive(root, "online_users")
            receive(alice, "user_joined_ticket")

        left = receive(alice, "user_left_ticket")
        assert left == {"userId": admin.id, "userName": "Root", "ticketId": ticket.id}


def test_binary_frames_are_read_as_utf8_text(app_client):
    with app_client.websocket_connect("/ws/chat") as ws:
        ws.send_bytes(b'{"event": "ping"}')
        assert ws.receive_json() == {"event": "pong"}

        ws.send_bytes(b"\xff\xfe\x00garbage")
        assert receive(ws, "error")["message"] == "Malformed frame"

        send(ws, "ping")
        assert ws.receive_json() == {"event": "pong"}


def test_idle_connection_is_closed(app_client):
    app_client.app.state.chat_hub.idle_timeout = 0.2

    with app_client.websocket_connect("/ws/chat") as ws:
        send(ws, "ping")
        assert ws.receive_json() == {"event": "pong"}

        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()
        assert exc_info.value.code == 1000
