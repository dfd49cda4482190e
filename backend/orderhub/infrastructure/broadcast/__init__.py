"""Real-time broadcast sinks."""

from .websocket import WebSocketBroadcaster

__all__ = ["WebSocketBroadcaster"]
