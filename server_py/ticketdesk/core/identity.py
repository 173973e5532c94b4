from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol


class Role(str, Enum):
    CLIENT = "Client"
    SUPER_ADMIN = "SuperAdmin"


class Sender(Protocol):
    """What both Client and SuperAdmin rows expose to chat rendering."""

    id: str

    @property
    def display_name(self) -> str: ...

    @property
    def email(self) -> Optional[str]: ...

    @property
    def company_ref(self) -> Optional[str]: ...


@dataclass(frozen=True)
class SenderRef:
    role: Role
    id: str


@dataclass(frozen=True)
class Identity:
    """Authenticated principal, resolved once per token."""

    user_id: str
    role: Role
    display_name: str
    email: Optional[str] = None
    company_ref: Optional[str] = None

    @classmethod
    def from_sender(cls, sender: Sender, role: Role) -> "Identity":
        return cls(
            user_id=sender.id,
            role=role,
            display_name=sender.display_name,
            email=sender.email,
            company_ref=sender.company_ref,
        )

    @property
    def is_super_admin(self) -> bool:
        return self.role is Role.SUPER_ADMIN

    @property
    def sender_ref(self) -> SenderRef:
        return SenderRef(role=self.role, id=self.user_id)

    def public(self) -> dict:
        return {
            "id": self.user_id,
            "name": self.display_name,
            "email": self.email,
            "company": self.company_ref,
            "type": self.role.value,
        }
