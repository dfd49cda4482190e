"""Shared kernel primitives (events, registry, errors)."""

from .domain_events import (
    Event,
    EventMetadata,
    EventPriority,
    ProcessingError,
)
from .event_types import (
    ALL_EVENTS,
    EVENT_SCHEMAS,
    EventCategory,
    UserEvents,
    OrderEvents,
    SystemEvents,
    NotificationEvents,
    InventoryEvents,
    ValidationResult,
    create_event_metadata,
    get_event_category,
    is_known_event_type,
    validate_event_data,
)
from .exceptions import (
    DomainException,
    ValidationError,
    EventValidationError,
    EntityNotFoundError,
    InfrastructureError,
    StoreNotInitializedError,
    NotInitializedError,
    DuplicateEventError,
)

__all__ = [
    "Event",
    "EventMetadata",
    "EventPriority",
    "ProcessingError",
    "ALL_EVENTS",
    "EVENT_SCHEMAS",
    "EventCategory",
    "UserEvents",
    "OrderEvents",
    "SystemEvents",
    "NotificationEvents",
    "InventoryEvents",
    "ValidationResult",
    "create_event_metadata",
    "get_event_category",
    "is_known_event_type",
    "validate_event_data",
    "DomainException",
    "ValidationError",
    "EventValidationError",
    "EntityNotFoundError",
    "InfrastructureError",
    "StoreNotInitializedError",
    "NotInitializedError",
    "DuplicateEventError",
]
