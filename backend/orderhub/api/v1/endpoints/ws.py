"""Live event feed for dashboard clients."""
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from orderhub.api.deps import get_broadcaster
from orderhub.infrastructure.broadcast import WebSocketBroadcaster

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/events")
async def websocket_events(
    websocket: WebSocket,
    broadcaster: WebSocketBroadcaster = Depends(get_broadcaster),
):
    """
    Every event the bus receives from Redis is pushed as
    {"type": "<event type>", "data": {...event...}}.

    Clients may send "ping" to receive {"type": "pong"}; anything else is ignored.
    """
    connection_id = await broadcaster.connect(websocket)
    await websocket.send_json({"type": "connected", "connectionId": connection_id})
    try:
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.debug("WebSocket client %s went away", connection_id)
    finally:
        broadcaster.disconnect(connection_id)
