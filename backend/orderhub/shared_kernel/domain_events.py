"""Event primitives shared by the bus, the store and the handlers."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Optional, Tuple

DEFAULT_SOURCE = "microservice"
DEFAULT_VERSION = "1.0.0"

# Wire keys for the optional metadata fields, in output order.
_OPTIONAL_METADATA_KEYS = (
    ("correlation_id", "correlationId"),
    ("causation_id", "causationId"),
    ("user_id", "userId"),
)
_KNOWN_METADATA_KEYS = {
    "timestamp",
    "source",
    "version",
    "priority",
    "category",
    "tags",
    *(wire for _, wire in _OPTIONAL_METADATA_KEYS),
}
_ENVELOPE_KEYS = {"_id", "processed", "processingErrors", "createdAt", "updatedAt"}


class EventPriority(IntEnum):
    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4


def coerce_priority(value: Any) -> EventPriority:
    """Accept an ``EventPriority``, its number or its name (``"high"``)."""
    if value is None or value == "":
        return EventPriority.NORMAL
    if isinstance(value, str) and not value.strip().isdigit():
        try:
            return EventPriority[value.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown event priority: {value!r}") from None
    return EventPriority(int(value))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Accept ISO strings (with or without ``Z``) and naive datetimes as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp value: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class EventMetadata:
    """Fixed-shape metadata attached to every event."""

    timestamp: datetime = field(default_factory=utcnow)
    source: str = DEFAULT_SOURCE
    version: str = DEFAULT_VERSION
    correlation_id: Optional[str] = None
    causation_id: Optional[str] = None
    user_id: Optional[str] = None
    priority: EventPriority = EventPriority.NORMAL
    category: Optional[str] = None
    tags: Tuple[str, ...] = ()
    extra: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "timestamp": format_timestamp(self.timestamp),
            "source": self.source,
            "version": self.version,
        }
        for attr, wire in _OPTIONAL_METADATA_KEYS:
            value = getattr(self, attr)
            if value is not None:
                payload[wire] = value
        payload["priority"] = int(self.priority)
        payload["category"] = self.category
        payload["tags"] = list(self.tags)
        for key, value in self.extra.items():
            payload.setdefault(key, value)
        return payload

    def to_overrides(self) -> Dict[str, Any]:
        """Keyword arguments for ``create_event_metadata`` reproducing this metadata."""
        overrides: Dict[str, Any] = dict(self.extra)
        overrides.update(
            timestamp=self.timestamp,
            source=self.source,
            version=self.version,
            correlation_id=self.correlation_id,
            causation_id=self.causation_id,
            user_id=self.user_id,
            priority=self.priority,
            category=self.category,
            tags=list(self.tags),
        )
        return overrides

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "EventMetadata":
        extra = {key: value for key, value in payload.items() if key not in _KNOWN_METADATA_KEYS}
        optional = {attr: payload.get(wire) for attr, wire in _OPTIONAL_METADATA_KEYS}
        return cls(
            timestamp=parse_timestamp(payload["timestamp"]) if payload.get("timestamp") else utcnow(),
            source=payload.get("source") or DEFAULT_SOURCE,
            version=payload.get("version") or DEFAULT_VERSION,
            priority=coerce_priority(payload.get("priority")),
            category=payload.get("category"),
            tags=tuple(payload.get("tags") or ()),
            extra=extra,
            **optional,
        )


@dataclass(frozen=True)
class ProcessingError:
    error: str
    timestamp: datetime = field(default_factory=utcnow)
    retry_count: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "timestamp": format_timestamp(self.timestamp),
            "retryCount": self.retry_count,
        }


@dataclass(frozen=True)
class Event:
    """An immutable record of something that happened."""

    id: str
    type: str
    data: Dict[str, Any]
    metadata: EventMetadata = field(default_factory=EventMetadata)
    processed: bool = False
    processing_errors: Tuple[ProcessingError, ...] = ()

    @property
    def correlation_id(self) -> Optional[str]:
        return self.metadata.correlation_id

    @property
    def causation_id(self) -> Optional[str]:
        return self.metadata.causation_id

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation published on Redis and returned by the API."""
        return {
            "id": self.id,
            "type": self.type,
            "data": self.data,
            "metadata": self.metadata.to_dict(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def to_document(self) -> Dict[str, Any]:
        """Representation stored in the ``events`` collection."""
        document = self.to_dict()
        document["metadata"]["timestamp"] = self.metadata.timestamp
        document["processed"] = self.processed
        document["processingErrors"] = [
            {"error": item.error, "timestamp": item.timestamp, "retryCount": item.retry_count}
            for item in self.processing_errors
        ]
        return document

    def with_bookkeeping(self) -> Dict[str, Any]:
        """Wire representation plus the store's processing fields."""
        payload = self.to_dict()
        payload["processed"] = self.processed
        payload["processingErrors"] = [item.to_dict() for item in self.processing_errors]
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Event":
        errors: List[ProcessingError] = []
        for item in payload.get("processingErrors") or []:
            errors.append(
                ProcessingError(
                    error=str(item.get("error")),
                    timestamp=parse_timestamp(item["timestamp"]) if item.get("timestamp") else utcnow(),
                    retry_count=int(item.get("retryCount") or 1),
                )
            )
        return cls(
            id=str(payload["id"]),
            type=str(payload["type"]),
            data=dict(payload.get("data") or {}),
            metadata=EventMetadata.from_dict(payload.get("metadata") or {}),
            processed=bool(payload.get("processed", False)),
            processing_errors=tuple(errors),
        )

    @classmethod
    def from_json(cls, raw: Any) -> "Event":
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        payload = json.loads(raw)
        return cls.from_dict({k: v for k, v in payload.items() if k not in _ENVELOPE_KEYS})
