"""API v1 routers."""
from fastapi import APIRouter

from orderhub.api.v1.endpoints import events, ws

api_router = APIRouter()
api_router.include_router(events.router, prefix="/events", tags=["Events"])

ws_router = ws.router
