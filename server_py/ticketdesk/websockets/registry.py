"""In-memory state of the ticket chat: live connections and ticket rooms.

Everything here is touched from the event loop only, so there is no locking.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Protocol, Set

from ticketdesk.core.identity import Identity


class Connection(Protocol):
    """Transport handle the hub talks to. ``send`` only enqueues and never blocks."""

    id: str

    def send(self, event: str, data: Any = None) -> None: ...


@dataclass(eq=False)
class ConnectionSession:
    connection: Connection
    identity: Optional[Identity] = None
    joined_tickets: Set[str] = field(default_factory=set)

    @property
    def id(self) -> str:
        return self.connection.id

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    def send(self, event: str, data: Any = None) -> None:
        self.connection.send(event, data)


class ConnectionRegistry:
    def __init__(self) -> None:
        self._sessions: Dict[str, ConnectionSession] = {}

    def add(self, connection: Connection) -> ConnectionSession:
        session = ConnectionSession(connection=connection)
        self._sessions[connection.id] = session
        return session

    def get(self, connection_id: str) -> Optional[ConnectionSession]:
        return self._sessions.get(connection_id)

    def remove(self, connection_id: str) -> Optional[ConnectionSession]:
        return self._sessions.pop(connection_id, None)

    def authenticated(self) -> Iterator[ConnectionSession]:
        for session in list(self._sessions.values()):
            if session.is_authenticated:
                yield session

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


class RoomManager:
    """ticket id -> connection ids, in join order. Empty rooms are dropped."""

    def __init__(self) -> None:
        self._rooms: Dict[str, Dict[str, None]] = {}

    def join(self, ticket_id: str, connection_id: str) -> bool:
        """Add a member; False if it was already there."""
        members = self._rooms.setdefault(ticket_id, {})
        if connection_id in members:
            return False
        members[connection_id] = None
        return True

    def leave(self, ticket_id: str, connection_id: str) -> bool:
        members = self._rooms.get(ticket_id)
        if members is None or connection_id not in members:
            return False
        del members[connection_id]
        if not members:
            del self._rooms[ticket_id]
        return True

    def members(self, ticket_id: str) -> List[str]:
        return list(self._rooms.get(ticket_id, ()))

    def has_room(self, ticket_id: str) -> bool:
        return ticket_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
