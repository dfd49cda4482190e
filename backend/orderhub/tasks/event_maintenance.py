"""Maintenance tasks for the event store."""
from __future__ import annotations

import asyncio
from collections import Counter
import logging
from typing import Any, Dict, Optional

from pymongo import AsyncMongoClient

from orderhub.core.celery_app import celery_app
from orderhub.core.config import settings
from orderhub.infrastructure.event_store import EventStore
from orderhub.shared_kernel.domain_events import format_timestamp

logger = logging.getLogger(__name__)


def _open_client() -> AsyncMongoClient:
    return AsyncMongoClient(
        settings.MONGODB_URL,
        tz_aware=True,
        serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
    )


async def _cleanup_event_store(older_than_days: Optional[int] = None) -> Dict[str, Any]:
    """Delete processed events past the retention window."""
    days = settings.EVENT_RETENTION_DAYS if older_than_days is None else older_than_days
    if days < 0:
        return {"error": "older_than_days must be non-negative"}

    client = _open_client()
    try:
        store = EventStore(client[settings.MONGODB_DATABASE])
        await store.initialize()
        deleted = await store.cleanup(days)
    finally:
        await client.close()

    logger.info("Event store cleanup removed %d events", deleted, extra={"older_than_days": days})
    return {"deleted": deleted, "older_than_days": days}


async def _report_unprocessed_events(limit: int = 100) -> Dict[str, Any]:
    """Summarize events nobody marked processed, oldest first."""
    client = _open_client()
    try:
        store = EventStore(client[settings.MONGODB_DATABASE])
        await store.initialize()
        events = await store.get_unprocessed_events(limit)
    finally:
        await client.close()

    by_type = Counter(event.type for event in events)
    failing = [event.id for event in events if event.processing_errors]
    report = {
        "count": len(events),
        "by_type": dict(by_type),
        "with_errors": failing,
        "oldest": format_timestamp(events[0].metadata.timestamp) if events else None,
    }
    if events:
        logger.warning("Found %d unprocessed events", len(events), extra={"report": report})
    return report


@celery_app.task(name="cleanup_event_store")
def cleanup_event_store(older_than_days: Optional[int] = None) -> Dict[str, Any]:
    return asyncio.run(_cleanup_event_store(older_than_days))


@celery_app.task(name="report_unprocessed_events")
def report_unprocessed_events(limit: int = 100) -> Dict[str, Any]:
    return asyncio.run(_report_unprocessed_events(limit))
