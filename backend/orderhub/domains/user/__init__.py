"""User bounded context."""

from .application.event_handlers import UserEventHandlers

__all__ = ["UserEventHandlers"]
