"""MongoDB implementation of the event store."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from orderhub.shared_kernel.domain_events import Event, parse_timestamp, utcnow
from orderhub.shared_kernel.exceptions import DuplicateEventError, StoreNotInitializedError
from .interfaces import EventStoreBackend

logger = logging.getLogger(__name__)

COLLECTION_NAME = "events"
_NO_OBJECT_ID = {"_id": 0}

DateLike = Union[datetime, str]


class EventStore(EventStoreBackend):
    """Append-only event log in the ``events`` collection.

    ``database`` is a pymongo ``AsyncDatabase``; only ``processed`` and
    ``processingErrors`` are ever updated after insertion.
    """

    def __init__(self, database: Any, collection_name: str = COLLECTION_NAME) -> None:
        self._database = database
        self._collection_name = collection_name
        self._collection: Any = None

    @property
    def is_initialized(self) -> bool:
        return self._collection is not None

    def _require_collection(self) -> Any:
        if self._collection is None:
            raise StoreNotInitializedError()
        return self._collection

    async def initialize(self) -> None:
        try:
            await self._database.command("ping")
            collection = self._database[self._collection_name]
            await collection.create_index("id", unique=True, name="event_id_unique")
            await collection.create_index(
                [("type", ASCENDING), ("metadata.timestamp", DESCENDING)],
                name="type_timestamp",
            )
            await collection.create_index("metadata.correlationId", name="correlation_id")
            await collection.create_index(
                [("processed", ASCENDING), ("metadata.timestamp", ASCENDING)],
                name="processed_timestamp",
            )
        except PyMongoError:
            logger.exception("Failed to initialize EventStore")
            raise
        self._collection = collection
        logger.info("EventStore initialized", extra={"collection": self._collection_name})

    async def save_event(self, event: Event) -> Event:
        collection = self._require_collection()
        try:
            await collection.insert_one(event.to_document())
        except DuplicateKeyError as exc:
            raise DuplicateEventError(event.id) from exc
        logger.debug("Event saved to store: %s", event.type, extra={"event_id": event.id})
        return event

    async def get_event(self, event_id: str) -> Optional[Event]:
        collection = self._require_collection()
        document = await collection.find_one({"id": event_id}, _NO_OBJECT_ID)
        return Event.from_dict(document) if document else None

    async def _find(
        self,
        query: Dict[str, Any],
        sort_direction: int,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Event]:
        collection = self._require_collection()
        # BSON dates stop at milliseconds; _id keeps insertion order for ties.
        cursor = collection.find(query, _NO_OBJECT_ID).sort(
            [("metadata.timestamp", sort_direction), ("_id", sort_direction)]
        )
        if offset:
            cursor = cursor.skip(offset)
        if limit:
            cursor = cursor.limit(limit)
        documents = await cursor.to_list(length=None)
        return [Event.from_dict(document) for document in documents]

    async def get_events(
        self,
        event_type: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Event]:
        query = {"type": event_type} if event_type else {}
        return await self._find(query, DESCENDING, limit=limit, offset=offset)

    async def get_events_by_correlation_id(self, correlation_id: str) -> List[Event]:
        return await self._find({"metadata.correlationId": correlation_id}, ASCENDING)

    async def get_events_by_date_range(
        self,
        start: DateLike,
        end: DateLike,
        event_type: Optional[str] = None,
    ) -> List[Event]:
        query: Dict[str, Any] = {
            "metadata.timestamp": {
                "$gte": parse_timestamp(start),
                "$lte": parse_timestamp(end),
            }
        }
        if event_type:
            query["type"] = event_type
        return await self._find(query, DESCENDING)

    async def mark_event_as_processed(self, event_id: str) -> None:
        collection = self._require_collection()
        await collection.update_one({"id": event_id}, {"$set": {"processed": True}})
        logger.debug("Event marked as processed: %s", event_id)

    async def add_processing_error(
        self,
        event_id: str,
        error: Union[BaseException, str],
        retry_count: int = 1,
    ) -> None:
        collection = self._require_collection()
        await collection.update_one(
            {"id": event_id},
            {
                "$push": {
                    "processingErrors": {
                        "error": str(error),
                        "timestamp": utcnow(),
                        "retryCount": retry_count,
                    }
                }
            },
        )
        logger.debug("Processing error added for event: %s", event_id)

    async def get_unprocessed_events(self, limit: int = 100) -> List[Event]:
        return await self._find({"processed": False}, ASCENDING, limit=limit)

    async def get_event_stats(self) -> Dict[str, Any]:
        collection = self._require_collection()
        pipeline = [
            {
                "$group": {
                    "_id": "$type",
                    "count": {"$sum": 1},
                    "processed": {"$sum": {"$cond": ["$processed", 1, 0]}},
                    "unprocessed": {"$sum": {"$cond": ["$processed", 0, 1]}},
                    "lastEvent": {"$max": "$metadata.timestamp"},
                }
            },
            {"$sort": {"count": -1}},
        ]
        cursor = await collection.aggregate(pipeline)
        groups = await cursor.to_list(length=None)

        total_events = await collection.count_documents({})
        total_processed = await collection.count_documents({"processed": True})

        return {
            "totalEvents": total_events,
            "totalProcessed": total_processed,
            "totalUnprocessed": total_events - total_processed,
            "eventTypes": [
                {
                    "type": group["_id"],
                    "count": group["count"],
                    "processed": group["processed"],
                    "unprocessed": group["unprocessed"],
                    "lastEvent": group.get("lastEvent"),
                }
                for group in groups
            ],
        }

    async def health_check(self) -> bool:
        if self._collection is None:
            return False
        try:
            await self._collection.find_one({}, {"_id": 1})
        except PyMongoError:
            logger.exception("EventStore health check failed")
            return False
        return True

    async def cleanup(self, older_than_days: int = 30) -> int:
        """Delete processed events older than the cutoff; unprocessed ones are kept."""
        collection = self._require_collection()
        cutoff = utcnow() - timedelta(days=older_than_days)
        result = await collection.delete_many(
            {"metadata.timestamp": {"$lt": cutoff}, "processed": True}
        )
        logger.info("Cleaned up %s old events", result.deleted_count)
        return result.deleted_count
