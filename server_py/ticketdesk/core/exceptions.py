"""Failures raised by the chat subsystem and the services behind it.

Every error carries a human-readable ``message`` that is safe to send back
to the client as-is.
"""
from __future__ import annotations


class ChatError(Exception):
    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthError(ChatError):
    default_message = "Authentication failed"


class AccountInactive(AuthError):
    default_message = "User account is inactive"


class NotAuthenticated(ChatError):
    default_message = "User not authenticated"


class NotFound(ChatError):
    default_message = "Ticket not found"


class AccessDenied(ChatError):
    default_message = "Access denied to this ticket"


class InvalidPayload(ChatError):
    default_message = "Invalid payload"


class RateLimited(ChatError):
    default_message = "Rate limit exceeded. Please slow down."


class StorageError(ChatError):
    default_message = "Failed to save file"
