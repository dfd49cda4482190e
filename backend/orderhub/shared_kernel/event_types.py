"""Event type registry: canonical type strings, schemas and metadata helpers."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .domain_events import (
    DEFAULT_SOURCE,
    DEFAULT_VERSION,
    EventMetadata,
    EventPriority,
    coerce_priority,
    utcnow,
)

logger = logging.getLogger(__name__)


class UserEvents:
    USER_CREATED = "user.created"
    USER_UPDATED = "user.updated"
    USER_DELETED = "user.deleted"
    USER_LOGIN = "user.login"
    USER_LOGOUT = "user.logout"


class OrderEvents:
    ORDER_CREATED = "order.created"
    ORDER_UPDATED = "order.updated"
    ORDER_CANCELLED = "order.cancelled"
    ORDER_COMPLETED = "order.completed"
    ORDER_PAYMENT_PROCESSED = "order.payment.processed"
    ORDER_PAYMENT_FAILED = "order.payment.failed"
    ORDER_PAYMENT_REFUNDED = "order.payment.refunded"
    ORDER_SHIPPED = "order.shipped"
    ORDER_DELIVERED = "order.delivered"


class SystemEvents:
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"
    SYSTEM_ERROR = "system.error"
    SYSTEM_HEALTH_CHECK = "system.health.check"


class NotificationEvents:
    EMAIL_SENT = "notification.email.sent"
    SMS_SENT = "notification.sms.sent"
    PUSH_NOTIFICATION_SENT = "notification.push.sent"
    NOTIFICATION_FAILED = "notification.failed"


class InventoryEvents:
    INVENTORY_UPDATED = "inventory.updated"
    INVENTORY_LOW_STOCK = "inventory.low.stock"
    INVENTORY_OUT_OF_STOCK = "inventory.out.of.stock"
    INVENTORY_RESTOCKED = "inventory.restocked"


class EventCategory(str, Enum):
    USER = "user"
    ORDER = "order"
    SYSTEM = "system"
    NOTIFICATION = "notification"
    INVENTORY = "inventory"


UNKNOWN_CATEGORY = "unknown"


def _values(group: type) -> frozenset:
    return frozenset(
        value for name, value in vars(group).items() if name.isupper() and isinstance(value, str)
    )


CATEGORY_MEMBERS: Dict[EventCategory, frozenset] = {
    EventCategory.USER: _values(UserEvents),
    EventCategory.ORDER: _values(OrderEvents),
    EventCategory.SYSTEM: _values(SystemEvents),
    EventCategory.NOTIFICATION: _values(NotificationEvents),
    EventCategory.INVENTORY: _values(InventoryEvents),
}

ALL_EVENTS = frozenset().union(*CATEGORY_MEMBERS.values())


@dataclass(frozen=True)
class EventSchema:
    required: tuple = ()
    optional: tuple = ()

    @property
    def allowed(self) -> frozenset:
        return frozenset(self.required) | frozenset(self.optional)


EVENT_SCHEMAS: Dict[str, EventSchema] = {
    UserEvents.USER_CREATED: EventSchema(
        required=("userId", "email", "username"),
        optional=("firstName", "lastName", "role"),
    ),
    UserEvents.USER_UPDATED: EventSchema(
        required=("userId",),
        optional=("email", "username", "firstName", "lastName", "role", "updatedFields"),
    ),
    UserEvents.USER_DELETED: EventSchema(
        required=("userId",),
        optional=("reason", "email"),
    ),
    OrderEvents.ORDER_CREATED: EventSchema(
        required=("orderId", "userId", "items", "totalAmount"),
        optional=("orderNumber", "shippingAddress", "paymentMethod", "notes"),
    ),
    OrderEvents.ORDER_UPDATED: EventSchema(
        required=("orderId",),
        optional=("orderNumber", "userId", "status", "items", "totalAmount", "shippingAddress", "updatedFields"),
    ),
    OrderEvents.ORDER_CANCELLED: EventSchema(
        required=("orderId", "reason"),
        optional=("orderNumber", "userId", "refundAmount", "cancelledBy"),
    ),
    InventoryEvents.INVENTORY_UPDATED: EventSchema(
        required=("productId", "quantity", "operation"),
        optional=("reason", "location"),
    ),
}


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


def is_known_event_type(event_type: str) -> bool:
    return event_type in ALL_EVENTS


def get_event_category(event_type: str) -> str:
    for category, members in CATEGORY_MEMBERS.items():
        if event_type in members:
            return category.value
    return UNKNOWN_CATEGORY


def validate_event_data(event_type: str, data: Mapping[str, Any]) -> ValidationResult:
    """Check ``data`` against the registered schema for ``event_type``.

    Types without a schema always validate. Missing or ``None`` required fields
    each produce one error. Fields outside the schema are only logged.
    """
    schema = EVENT_SCHEMAS.get(event_type)
    if schema is None:
        return ValidationResult(valid=True)

    errors = [
        f"Missing required field: {name}"
        for name in schema.required
        if data.get(name) is None
    ]

    for name in data:
        if name not in schema.allowed:
            logger.warning(
                "Unknown field in event data: %s",
                name,
                extra={"event_type": event_type},
            )

    return ValidationResult(valid=not errors, errors=errors)


def _dedupe(tags: Optional[Iterable[str]]) -> tuple:
    seen: Dict[str, None] = {}
    for tag in tags or ():
        seen.setdefault(str(tag), None)
    return tuple(seen)


def create_event_metadata(
    *,
    timestamp: Optional[datetime] = None,
    source: Optional[str] = None,
    version: Optional[str] = None,
    correlation_id: Optional[str] = None,
    causation_id: Optional[str] = None,
    user_id: Optional[str] = None,
    priority: Union[EventPriority, int, str, None] = None,
    category: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
    **extra: Any,
) -> EventMetadata:
    """Build an ``EventMetadata`` with the registry defaults filled in."""
    return EventMetadata(
        timestamp=timestamp or utcnow(),
        source=source or DEFAULT_SOURCE,
        version=version or DEFAULT_VERSION,
        correlation_id=correlation_id,
        causation_id=causation_id,
        user_id=user_id,
        priority=coerce_priority(priority),
        category=category,
        tags=_dedupe(tags),
        extra=extra,
    )
