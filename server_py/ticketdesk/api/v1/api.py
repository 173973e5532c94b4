from fastapi import APIRouter
from ticketdesk.api.v1.endpoints import auth, superadmin, tickets

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(superadmin.router, prefix="/superadmin", tags=["superadmin"])
api_router.include_router(tickets.router, prefix="/tickets", tags=["tickets"])
