"""WebSocket fan-out of bus events to dashboard clients."""
from __future__ import annotations

import logging
from typing import Any, Dict
import uuid

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketBroadcaster:
    """Tracks connected dashboard sockets and pushes every message to all of them."""

    def __init__(self) -> None:
        self.active_connections: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self.active_connections[connection_id] = websocket
        logger.info("Client connected: %s", connection_id)
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        if self.active_connections.pop(connection_id, None) is not None:
            logger.info("Client disconnected: %s", connection_id)

    async def broadcast(self, message: Dict[str, Any]) -> None:
        stale = []
        for connection_id, websocket in list(self.active_connections.items()):
            try:
                await websocket.send_json(message)
            except Exception:
                logger.warning("Dropping WebSocket client %s", connection_id, exc_info=True)
                stale.append(connection_id)
        for connection_id in stale:
            self.disconnect(connection_id)

    def __len__(self) -> int:
        return len(self.active_connections)
