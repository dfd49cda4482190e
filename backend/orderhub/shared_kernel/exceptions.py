"""Shared kernel exception hierarchy."""
from typing import Optional, Dict, Any


class DomainException(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}


class ValidationError(DomainException):
    """Raised when domain validation fails."""


class EventValidationError(ValidationError):
    """Raised when event data is rejected by the registry schema."""


class EntityNotFoundError(DomainException):
    """Raised when a domain entity is not found."""


class InfrastructureError(DomainException):
    """Raised when a backing service misbehaves."""


class StoreNotInitializedError(InfrastructureError):
    """Raised when the event store is used before initialize()."""

    def __init__(self, message: str = "EventStore not initialized") -> None:
        super().__init__(message, code="STORE_NOT_INITIALIZED")


class NotInitializedError(InfrastructureError):
    """Raised when the event bus is used before it is ready."""

    def __init__(self, message: str = "EventBus not initialized") -> None:
        super().__init__(message, code="BUS_NOT_INITIALIZED")


class DuplicateEventError(InfrastructureError):
    """Raised when an event id is already present in the store."""

    def __init__(self, event_id: str) -> None:
        super().__init__(
            f"Event {event_id} already exists",
            code="DUPLICATE_EVENT",
            details={"event_id": event_id},
        )
