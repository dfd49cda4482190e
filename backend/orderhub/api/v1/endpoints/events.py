"""Event system endpoints: inspection, publishing and replay."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from pymongo.errors import PyMongoError
from redis.exceptions import RedisError

from orderhub.api.deps import get_event_bus, get_event_store
from orderhub.core.rate_limit import limiter
from orderhub.infrastructure.event_bus import EventBus
from orderhub.infrastructure.event_store import EventStore
from orderhub.schemas.events import Pagination, PublishEventRequest, SuccessResponse
from orderhub.shared_kernel.domain_events import EventMetadata, format_timestamp, parse_timestamp, utcnow
from orderhub.shared_kernel.event_types import is_known_event_type, validate_event_data
from orderhub.shared_kernel.exceptions import (
    DuplicateEventError,
    EntityNotFoundError,
    EventValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter()

PUBLISH_LIMIT = "30/minute"


def _require_known_type(event_type: str) -> None:
    if not is_known_event_type(event_type):
        raise EventValidationError(
            "Invalid event type",
            code="UNKNOWN_EVENT_TYPE",
            details={"event_type": event_type},
        )


def _pagination(page: int, limit: int, returned: int) -> Pagination:
    return Pagination(page=page, limit=limit, has_more=returned == limit)


@router.get("/health")
async def get_event_system_health(bus: EventBus = Depends(get_event_bus)):
    """Redis and store reachability; 503 when either is down."""
    health = await bus.health_check()
    code = status.HTTP_200_OK if health["status"] == "healthy" else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=code, content=SuccessResponse(data={"health": health}).dump())


@router.get("/stats")
async def get_event_stats(store: EventStore = Depends(get_event_store)):
    stats = await store.get_event_stats()
    return SuccessResponse(data={"stats": jsonable_encoder(stats)}).dump()


@router.get("/subscribers")
async def get_subscribers(bus: EventBus = Depends(get_event_bus)):
    subscribers = bus.get_subscribers()
    return SuccessResponse(results=len(subscribers), data={"subscribers": subscribers}).dump()


@router.get("")
async def list_events(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    store: EventStore = Depends(get_event_store),
):
    events = await store.get_events(None, limit, (page - 1) * limit)
    return SuccessResponse(
        results=len(events),
        pagination=_pagination(page, limit, len(events)),
        data={"events": [event.with_bookkeeping() for event in events]},
    ).dump()


@router.get("/types/{event_type}")
async def list_events_by_type(
    event_type: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    store: EventStore = Depends(get_event_store),
):
    _require_known_type(event_type)
    events = await store.get_events(event_type, limit, (page - 1) * limit)
    return SuccessResponse(
        results=len(events),
        pagination=_pagination(page, limit, len(events)),
        data={"events": [event.with_bookkeeping() for event in events], "eventType": event_type},
    ).dump()


@router.get("/correlation/{correlation_id}")
async def list_events_by_correlation(correlation_id: str, store: EventStore = Depends(get_event_store)):
    """The causal chain of one workflow, oldest first."""
    events = await store.get_events_by_correlation_id(correlation_id)
    return SuccessResponse(
        results=len(events),
        data={"events": [event.with_bookkeeping() for event in events], "correlationId": correlation_id},
    ).dump()


@router.get("/date-range")
async def list_events_by_date_range(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    event_type: Optional[str] = Query(None, alias="eventType"),
    store: EventStore = Depends(get_event_store),
):
    if not start_date or not end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Start date and end date are required",
        )
    try:
        start, end = parse_timestamp(start_date), parse_timestamp(end_date)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid date format")

    events = await store.get_events_by_date_range(start, end, event_type)
    return SuccessResponse(
        results=len(events),
        data={
            "events": [event.with_bookkeeping() for event in events],
            "dateRange": {"startDate": start_date, "endDate": end_date, "eventType": event_type},
        },
    ).dump()


@router.get("/debug/unprocessed")
async def list_unprocessed_events(
    limit: int = Query(100, ge=1, le=1000),
    store: EventStore = Depends(get_event_store),
):
    events = await store.get_unprocessed_events(limit)
    return SuccessResponse(
        results=len(events),
        data={"events": [event.with_bookkeeping() for event in events]},
    ).dump()


@router.post("/debug/{event_id}/mark-processed")
async def mark_event_as_processed(
    event_id: str,
    store: EventStore = Depends(get_event_store),
    x_user_id: Optional[str] = Header(None),
):
    await store.mark_event_as_processed(event_id)
    logger.info("Event marked as processed: %s", event_id, extra={"marked_by": x_user_id or "admin"})
    return SuccessResponse(message="Event marked as processed").dump()


@router.get("/{event_id}")
async def get_event(event_id: str, store: EventStore = Depends(get_event_store)):
    event = await store.get_event(event_id)
    if event is None:
        raise EntityNotFoundError("Event not found", code="EVENT_NOT_FOUND", details={"event_id": event_id})
    return SuccessResponse(data={"event": event.with_bookkeeping()}).dump()


@router.post("/publish", status_code=status.HTTP_201_CREATED)
@limiter.limit(PUBLISH_LIMIT)
async def publish_event(
    request: Request,
    payload: PublishEventRequest,
    bus: EventBus = Depends(get_event_bus),
    x_correlation_id: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None),
):
    """Publish an event by hand; data is always validated here."""
    _require_known_type(payload.event_type)
    validation = validate_event_data(payload.event_type, payload.data)
    if not validation.valid:
        raise EventValidationError(
            f"Invalid event data: {', '.join(validation.errors)}",
            code="INVALID_EVENT_DATA",
            details={"errors": validation.errors},
        )

    try:
        metadata = EventMetadata.from_dict(payload.metadata).to_overrides()
    except (TypeError, ValueError) as exc:
        raise EventValidationError(
            f"Invalid event metadata: {exc}",
            code="INVALID_EVENT_METADATA",
            details={"error": str(exc)},
        )
    if not payload.metadata.get("version"):
        # Let the bus apply its configured schema version.
        metadata.pop("version")
    metadata["source"] = "api"
    if x_correlation_id:
        metadata["correlation_id"] = x_correlation_id
    if x_user_id:
        metadata["user_id"] = x_user_id

    try:
        event = await bus.publish(payload.event_type, payload.data, metadata)
    except (PyMongoError, RedisError, DuplicateEventError):
        logger.exception("Failed to publish event via API: %s", payload.event_type)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to publish event")

    logger.info(
        "Event published via API: %s",
        payload.event_type,
        extra={"event_id": event.id, "published_by": x_user_id or "anonymous"},
    )
    return SuccessResponse(message="Event published successfully", data={"event": event.to_dict()}).dump()


@router.post("/{event_id}/replay")
@limiter.limit(PUBLISH_LIMIT)
async def replay_event(
    request: Request,
    event_id: str,
    bus: EventBus = Depends(get_event_bus),
    x_user_id: Optional[str] = Header(None),
):
    """Re-publish a stored event as a new event caused by the original."""
    original = await bus.event_store.get_event(event_id)
    if original is None:
        raise EntityNotFoundError("Event not found", code="EVENT_NOT_FOUND", details={"event_id": event_id})

    replayed_by = x_user_id or "admin"
    metadata = original.metadata.to_overrides()
    metadata.update(
        source="replay",
        correlation_id=original.correlation_id,
        causation_id=original.id,
        user_id=replayed_by,
        originalEventId=original.id,
        replayedAt=format_timestamp(utcnow()),
        replayedBy=replayed_by,
    )

    try:
        replayed = await bus.publish(original.type, original.data, metadata)
    except (PyMongoError, RedisError, DuplicateEventError):
        logger.exception("Failed to replay event: %s", event_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to replay event")

    logger.info(
        "Event replayed: %s",
        original.type,
        extra={"original_event_id": original.id, "replayed_event_id": replayed.id, "replayed_by": replayed_by},
    )
    return SuccessResponse(
        message="Event replayed successfully",
        data={"originalEvent": original.with_bookkeeping(), "replayedEvent": replayed.to_dict()},
    ).dump()
