# Все модели должны попасть в metadata до первого обращения к relationship()
from ticketdesk.models.company import Company  # noqa: F401
from ticketdesk.models.client import Client  # noqa: F401
from ticketdesk.models.super_admin import SuperAdmin  # noqa: F401
from ticketdesk.models.ticket import Ticket  # noqa: F401
from ticketdesk.models.chat_message import ChatAttachment, ChatMessage  # noqa: F401
