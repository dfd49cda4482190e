"""Domain handler groups reacting to published events."""

from .handler_manager import EventHandlerManager

__all__ = ["EventHandlerManager"]
