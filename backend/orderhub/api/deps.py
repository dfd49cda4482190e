"""FastAPI dependencies resolving services from the lifespan container."""
from fastapi import HTTPException, Request, WebSocket, status

from orderhub.infrastructure.broadcast import WebSocketBroadcaster
from orderhub.infrastructure.di import Container
from orderhub.infrastructure.event_bus import EventBus
from orderhub.infrastructure.event_store import EventStore


def _container_of(app) -> Container:
    container = getattr(app.state, "container", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Event system is not running",
        )
    return container


def get_event_bus(request: Request) -> EventBus:
    return _container_of(request.app).resolve(EventBus)


def get_event_store(request: Request) -> EventStore:
    return _container_of(request.app).resolve(EventStore)


def get_broadcaster(websocket: WebSocket) -> WebSocketBroadcaster:
    return _container_of(websocket.app).resolve(WebSocketBroadcaster)
