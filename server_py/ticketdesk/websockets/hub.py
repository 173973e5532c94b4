"""Ticket chat orchestration.

One ``ChatHub`` lives for the lifetime of the application (see
``ticketdesk.main``). The websocket endpoint feeds it decoded frames through
``dispatch``; REST code reaches it through ``app.state.chat_hub`` to push
``ticket_created`` and to broadcast messages posted over HTTP.

Handlers run on the event loop and only yield at database or file I/O, so
the registry, rooms, limiter and typing timers need no locks. After every
await a handler re-checks that its connection is still registered before
touching shared state.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ticketdesk.core.config import settings
from ticketdesk.core.database import AsyncSessionLocal, session_scope
from ticketdesk.core.exceptions import AccessDenied, AuthError, ChatError, InvalidPayload, NotAuthenticated
from ticketdesk.core.identity import Identity
from ticketdesk.models.ticket import Ticket
from ticketdesk.schemas.chat import GetMessagesRequest, TicketRef
from ticketdesk.services.access import authorize_ticket_access
from ticketdesk.services.attachments import AttachmentStore
from ticketdesk.services.auth import AuthService
from ticketdesk.services.chat import ChatEntry, ChatService, serialize_entry
from ticketdesk.services.rate_limit import RateLimiter
from ticketdesk.services.tickets import serialize_ticket_created
from ticketdesk.services.validation import validate_message_payload
from ticketdesk.websockets.registry import Connection, ConnectionRegistry, ConnectionSession, RoomManager

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
Handler = Callable[[ConnectionSession, Dict[str, Any]], Awaitable[None]]


def _parse(model: Type[ModelT], data: Dict[str, Any]) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "payload"
        raise InvalidPayload(f"Invalid {field}: {first.get('msg', 'invalid value')}")


class ChatHub:
    def __init__(
        self,
        *,
        session_factory=AsyncSessionLocal,
        attachment_store: Optional[AttachmentStore] = None,
        rate_limiter: Optional[RateLimiter] = None,
        base_url: Optional[str] = None,
        typing_timeout: Optional[float] = None,
        idle_timeout: Optional[float] = None,
        sweep_interval: Optional[float] = None,
    ) -> None:
        self._session_factory = session_factory
        self.attachments = attachment_store or AttachmentStore()
        self.rate_limiter = rate_limiter or RateLimiter(
            window_seconds=settings.CHAT_RATE_LIMIT_WINDOW_SECONDS,
            max_requests=settings.CHAT_RATE_LIMIT_MAX_REQUESTS,
        )
        self.base_url = base_url if base_url is not None else settings.BASE_URL
        self.typing_timeout = typing_timeout if typing_timeout is not None else settings.CHAT_TYPING_TIMEOUT_SECONDS
        self.idle_timeout = idle_timeout if idle_timeout is not None else settings.CHAT_IDLE_TIMEOUT_SECONDS
        self.sweep_interval = sweep_interval if sweep_interval is not None else settings.CHAT_RATE_LIMIT_SWEEP_SECONDS

        self.registry = ConnectionRegistry()
        self.rooms = RoomManager()
        self._typing: Dict[Tuple[str, str], asyncio.Task] = {}
        self._sweeper: Optional[asyncio.Task] = None

        # event -> (handler, event used to report its failures)
        self._routes: Dict[str, Tuple[Handler, str]] = {
            "authenticate": (self.handle_authenticate, "authentication_error"),
            "join_ticket": (self.handle_join_ticket, "join_ticket_error"),
            "leave_ticket": (self.handle_leave_ticket, "error"),
            "get_messages": (self.handle_get_messages, "messages_error"),
            "send_message": (self.handle_send_message, "send_message_error"),
            "typing_start": (self.handle_typing_start, "error"),
            "typing_stop": (self.handle_typing_stop, "error"),
            "get_online_users": (self.handle_get_online_users, "online_users_error"),
            "ping": (self.handle_ping, "error"),
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._sweeper is None:
            self._sweeper = asyncio.create_task(self._sweep_rate_limits())

    async def stop(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        for task in self._typing.values():
            task.cancel()
        self._typing.clear()

    async def _sweep_rate_limits(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            removed = self.rate_limiter.cleanup()
            if removed:
                logger.debug("Rate limiter sweep dropped %s idle entries", removed)

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def connect(self, connection: Connection) -> ConnectionSession:
        logger.info("New chat connection: %s", connection.id)
        return self.registry.add(connection)

    def disconnect(self, connection_id: str) -> None:
        session = self.registry.remove(connection_id)
        if session is None:
            return
        for ticket_id in list(session.joined_tickets):
            self._leave_room(session, ticket_id)
        for key in [key for key in self._typing if key[0] == connection_id]:
            self._typing.pop(key).cancel()
        self.rate_limiter.forget(connection_id)
        if session.identity is not None:
            logger.info("User %s disconnected (connection %s)", session.identity.display_name, connection_id)
        else:
            logger.info("Unauthenticated connection %s disconnected", connection_id)

    def _alive(self, session: ConnectionSession) -> bool:
        return self.registry.get(session.id) is session

    async def dispatch(self, connection_id: str, event: str, data: Any = None) -> None:
        """Run the handler for ``event``; failures go back to the sender as ``*_error``."""
        session = self.registry.get(connection_id)
        if session is None:
            return
        route = self._routes.get(event)
        if route is None:
            session.send("error", {"success": False, "message": f"Unknown event: {event}"})
            return
        handler, error_event = route
        payload = data if isinstance(data, dict) else {}
        try:
            await handler(session, payload)
        except ChatError as exc:
            logger.info("%s rejected for connection %s: %s", event, connection_id, exc.message)
            self._send_error(session, error_event, exc.message, payload)
        except Exception:
            logger.exception("Unhandled error in %s for connection %s", event, connection_id)
            self._send_error(session, error_event, "Internal server error", payload)

    def _send_error(self, session: ConnectionSession, error_event: str, message: str, payload: Dict[str, Any]) -> None:
        if not self._alive(session):
            return
        body: Dict[str, Any] = {"success": False, "message": message}
        if error_event == "send_message_error":
            body["ticketId"] = payload.get("ticketId")
        session.send(error_event, body)

    @staticmethod
    def _require_identity(session: ConnectionSession) -> Identity:
        if session.identity is None:
            raise NotAuthenticated()
        return session.identity

    def _broadcast(self, ticket_id: str, event: str, data: Any, exclude: Optional[str] = None) -> None:
        for member_id in self.rooms.members(ticket_id):
            if member_id == exclude:
                continue
            member = self.registry.get(member_id)
            if member is not None:
                member.send(event, data)

    # ------------------------------------------------------------------
    # Rooms and presence
    # ------------------------------------------------------------------

    def online_users(self, ticket_id: str) -> List[dict]:
        users = []
        for member_id in self.rooms.members(ticket_id):
            member = self.registry.get(member_id)
            if member is None or member.identity is None:
                continue
            users.append({
                "userId": member.identity.user_id,
                "userName": member.identity.display_name,
                "userType": member.identity.role.value,
            })
        return users

    def _leave_room(self, session: ConnectionSession, ticket_id: str) -> None:
        self.rooms.leave(ticket_id, session.id)
        session.joined_tickets.discard(ticket_id)
        task = self._typing.pop((session.id, ticket_id), None)
        if task is not None:
            task.cancel()
        if session.identity is not None:
            self._broadcast(ticket_id, "user_left_ticket", {
                "userId": session.identity.user_id,
                "userName": session.identity.display_name,
                "ticketId": ticket_id,
            })

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def handle_authenticate(self, session: ConnectionSession, data: Dict[str, Any]) -> None:
        self.rate_limiter.check_limit(session.id)
        if session.is_authenticated:
            raise AuthError("Connection is already authenticated")

        async with session_scope(self._session_factory) as db:
            identity = await AuthService(db).authenticate_token(data.get("token"))

        if not self._alive(session):
            return
        session.identity = identity
        session.send("authenticated", {"success": True, "user": identity.public()})
        logger.info("User authenticated: %s (%s), connection %s", identity.display_name, identity.role.value, session.id)

    async def handle_join_ticket(self, session: ConnectionSession, data: Dict[str, Any]) -> None:
        identity = self._require_identity(session)
        self.rate_limiter.check_limit(session.id)
        ticket_id = _parse(TicketRef, data).ticket_id

        async with session_scope(self._session_factory) as db:
            ticket = await authorize_ticket_access(db, ticket_id, identity)

        if not self._alive(session):
            return
        if self.rooms.join(ticket_id, session.id):
            self._broadcast(ticket_id, "user_joined_ticket", {
                "userId": identity.user_id,
                "userName": identity.display_name,
                "ticketId": ticket_id,
            }, exclude=session.id)
        session.joined_tickets.add(ticket_id)

        session.send("joined_ticket", {
            "success": True,
            "ticketId": ticket_id,
            "ticket": {"id": ticket.id, "title": ticket.title, "status": ticket.status},
        })
        session.send("online_users", {"ticketId": ticket_id, "users": self.online_users(ticket_id)})
        logger.info("User %s joined ticket %s", identity.display_name, ticket_id)

    async def handle_leave_ticket(self, session: ConnectionSession, data: Dict[str, Any]) -> None:
        ticket_id = data.get("ticketId")
        if session.identity is None or ticket_id not in session.joined_tickets:
            return
        self._leave_room(session, ticket_id)
        session.send("left_ticket", {"success": True, "ticketId": ticket_id})
        logger.info("User %s left ticket %s", session.identity.display_name, ticket_id)

    async def handle_get_messages(self, session: ConnectionSession, data: Dict[str, Any]) -> None:
        identity = self._require_identity(session)
        request = _parse(GetMessagesRequest, data)

        async with session_scope(self._session_factory) as db:
            await authorize_ticket_access(db, request.ticket_id, identity)
            entries = await ChatService(db).history(request.ticket_id)
            page = entries[request.offset:request.offset + request.limit]
            messages = [serialize_entry(entry, self.base_url) for entry in page]

        if not self._alive(session):
            return
        session.send("messages_loaded", {
            "success": True,
            "ticketId": request.ticket_id,
            "messages": messages,
            "total": len(entries),
            "hasMore": request.offset + request.limit < len(entries),
        })

    async def handle_send_message(self, session: ConnectionSession, data: Dict[str, Any]) -> None:
        identity = self._require_identity(session)
        self.rate_limiter.check_limit(session.id)
        ticket_id = _parse(TicketRef, data).ticket_id
        validated = validate_message_payload(data)

        async with session_scope(self._session_factory) as db:
            ticket = await authorize_ticket_access(db, ticket_id, identity)
            entry = await ChatService(db).post(ticket, identity.sender_ref, validated, self.attachments)
            # Рассылаем сразу после записи, чтобы порядок в комнате совпадал с порядком в БД
            self.broadcast_message(entry)

    async def handle_typing_start(self, session: ConnectionSession, data: Dict[str, Any]) -> None:
        ticket_id = data.get("ticketId")
        if session.identity is None or ticket_id not in session.joined_tickets:
            return
        self._broadcast(ticket_id, "user_typing", {
            "userId": session.identity.user_id,
            "userName": session.identity.display_name,
            "ticketId": ticket_id,
        }, exclude=session.id)

        key = (session.id, ticket_id)
        pending = self._typing.pop(key, None)
        if pending is not None:
            pending.cancel()
        self._typing[key] = asyncio.create_task(self._expire_typing(session, ticket_id))

    async def _expire_typing(self, session: ConnectionSession, ticket_id: str) -> None:
        await asyncio.sleep(self.typing_timeout)
        key = (session.id, ticket_id)
        if self._typing.get(key) is asyncio.current_task():
            del self._typing[key]
        if self._alive(session) and session.identity is not None:
            self._broadcast(ticket_id, "user_stopped_typing", {
                "userId": session.identity.user_id,
                "ticketId": ticket_id,
            }, exclude=session.id)

    async def handle_typing_stop(self, session: ConnectionSession, data: Dict[str, Any]) -> None:
        ticket_id = data.get("ticketId")
        if session.identity is None or ticket_id not in session.joined_tickets:
            return
        self._broadcast(ticket_id, "user_stopped_typing", {
            "userId": session.identity.user_id,
            "ticketId": ticket_id,
        }, exclude=session.id)
        pending = self._typing.pop((session.id, ticket_id), None)
        if pending is not None:
            pending.cancel()

    async def handle_get_online_users(self, session: ConnectionSession, data: Dict[str, Any]) -> None:
        self._require_identity(session)
        ticket_id = data.get("ticketId")
        if ticket_id not in session.joined_tickets:
            raise AccessDenied("Join the ticket before requesting online users")
        session.send("online_users", {"ticketId": ticket_id, "users": self.online_users(ticket_id)})

    async def handle_ping(self, session: ConnectionSession, data: Dict[str, Any]) -> None:
        session.send("pong")

    # ------------------------------------------------------------------
    # Pushes from outside the socket
    # ------------------------------------------------------------------

    def broadcast_message(self, entry: ChatEntry) -> None:
        """Send ``new_message`` to every member of the message's ticket room."""
        self._broadcast(entry.message.ticket_id, "new_message", {
            "success": True,
            "data": serialize_entry(entry, self.base_url),
        })

    def notify_ticket_created(self, ticket: Ticket) -> int:
        """Push ``ticket_created`` to the owner's connections and every SuperAdmin."""
        notified = 0
        for session in self.registry.authenticated():
            identity = session.identity
            if identity.is_super_admin:
                session.send("ticket_created", serialize_ticket_created(ticket, for_admin=True))
                notified += 1
            elif identity.user_id == ticket.client_id:
                session.send("ticket_created", serialize_ticket_created(ticket))
                notified += 1
        logger.info("ticket_created for %s pushed to %s connections", ticket.id, notified)
        return notified
