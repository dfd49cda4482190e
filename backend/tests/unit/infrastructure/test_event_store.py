from datetime import datetime, timedelta, timezone

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from orderhub.infrastructure.event_store import EventStore
from orderhub.shared_kernel.domain_events import Event, EventMetadata, utcnow
from orderhub.shared_kernel.exceptions import DuplicateEventError, StoreNotInitializedError


def _event(event_id, event_type="order.created", timestamp=None, correlation_id=None):
    return Event(
        id=event_id,
        type=event_type,
        data={"orderId": event_id},
        metadata=EventMetadata(timestamp=timestamp or utcnow(), correlation_id=correlation_id),
    )


@pytest.mark.asyncio
async def test_operations_require_initialize(mongo_db):
    store = EventStore(mongo_db)

    assert store.is_initialized is False
    assert await store.health_check() is False
    with pytest.raises(StoreNotInitializedError, match="EventStore not initialized"):
        await store.save_event(_event("e-1"))
    with pytest.raises(StoreNotInitializedError):
        await store.get_events()


@pytest.mark.asyncio
async def test_initialize_creates_indexes(mongo_db):
    store = EventStore(mongo_db)
    await store.initialize()

    indexes = {kwargs["name"]: (keys, kwargs) for keys, kwargs in mongo_db["events"].indexes}
    assert indexes["event_id_unique"][1]["unique"] is True
    assert {"type_timestamp", "correlation_id", "processed_timestamp"} <= set(indexes)
    assert await store.health_check() is True


@pytest.mark.asyncio
async def test_initialize_propagates_connection_failure(mongo_db):
    mongo_db.reachable = False
    store = EventStore(mongo_db)

    with pytest.raises(ServerSelectionTimeoutError):
        await store.initialize()
    assert store.is_initialized is False


@pytest.mark.asyncio
async def test_save_and_get_round_trip(event_store):
    event = _event("e-1", correlation_id="corr-1")
    await event_store.save_event(event)

    loaded = await event_store.get_event("e-1")

    assert loaded == event
    assert await event_store.get_event("missing") is None


@pytest.mark.asyncio
async def test_duplicate_id_is_rejected(event_store):
    await event_store.save_event(_event("e-1"))

    with pytest.raises(DuplicateEventError) as exc_info:
        await event_store.save_event(_event("e-1"))
    assert exc_info.value.code == "DUPLICATE_EVENT"


@pytest.mark.asyncio
async def test_get_events_newest_first_with_type_filter_and_paging(event_store):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for index in range(5):
        await event_store.save_event(_event(f"o-{index}", timestamp=base + timedelta(minutes=index)))
    await event_store.save_event(_event("u-1", "user.created", timestamp=base + timedelta(hours=1)))

    newest = await event_store.get_events(limit=2)
    orders = await event_store.get_events("order.created", limit=2, offset=2)

    assert [event.id for event in newest] == ["u-1", "o-4"]
    assert [event.id for event in orders] == ["o-2", "o-1"]


@pytest.mark.asyncio
async def test_correlation_chain_is_returned_oldest_first(event_store):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    await event_store.save_event(_event("second", timestamp=base + timedelta(seconds=2), correlation_id="c"))
    await event_store.save_event(_event("first", timestamp=base, correlation_id="c"))
    await event_store.save_event(_event("other", timestamp=base, correlation_id="x"))

    chain = await event_store.get_events_by_correlation_id("c")

    assert [event.id for event in chain] == ["first", "second"]


@pytest.mark.asyncio
async def test_same_millisecond_events_keep_insertion_order(event_store):
    instant = datetime(2024, 1, 1, 12, 0, 0, 86000, tzinfo=timezone.utc)
    for event_id in ("order", "email", "inventory", "payment"):
        await event_store.save_event(_event(event_id, timestamp=instant, correlation_id="chain"))

    chain = await event_store.get_events_by_correlation_id("chain")
    newest = await event_store.get_events()
    unprocessed = await event_store.get_unprocessed_events()

    assert [event.id for event in chain] == ["order", "email", "inventory", "payment"]
    assert [event.id for event in newest] == ["payment", "inventory", "email", "order"]
    assert [event.id for event in unprocessed] == ["order", "email", "inventory", "payment"]


@pytest.mark.asyncio
async def test_date_range_is_inclusive_and_accepts_strings(event_store):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for day in range(4):
        await event_store.save_event(_event(f"d-{day}", timestamp=base + timedelta(days=day)))

    events = await event_store.get_events_by_date_range("2024-01-02T00:00:00Z", base + timedelta(days=2))

    assert [event.id for event in events] == ["d-2", "d-1"]


@pytest.mark.asyncio
async def test_processing_bookkeeping(event_store):
    await event_store.save_event(_event("e-1"))
    await event_store.save_event(_event("e-2"))

    await event_store.mark_event_as_processed("e-1")
    await event_store.add_processing_error("e-2", RuntimeError("handler blew up"), retry_count=3)

    unprocessed = await event_store.get_unprocessed_events()
    assert [event.id for event in unprocessed] == ["e-2"]
    assert unprocessed[0].processing_errors[0].error == "handler blew up"
    assert unprocessed[0].processing_errors[0].retry_count == 3
    assert (await event_store.get_event("e-1")).processed is True


@pytest.mark.asyncio
async def test_stats_group_by_type(event_store):
    await event_store.save_event(_event("o-1"))
    await event_store.save_event(_event("o-2"))
    await event_store.save_event(_event("u-1", "user.created"))
    await event_store.mark_event_as_processed("o-1")

    stats = await event_store.get_event_stats()

    assert stats["totalEvents"] == 3
    assert stats["totalProcessed"] == 1
    assert stats["totalUnprocessed"] == 2
    assert stats["eventTypes"][0]["type"] == "order.created"
    assert stats["eventTypes"][0]["count"] == 2
    assert stats["eventTypes"][0]["processed"] == 1


@pytest.mark.asyncio
async def test_cleanup_only_deletes_processed_events_past_cutoff(event_store):
    now = utcnow()
    await event_store.save_event(_event("old-processed", timestamp=now - timedelta(days=40)))
    await event_store.save_event(_event("old-unprocessed", timestamp=now - timedelta(days=60)))
    await event_store.save_event(_event("recent-processed", timestamp=now - timedelta(days=1)))
    await event_store.mark_event_as_processed("old-processed")
    await event_store.mark_event_as_processed("recent-processed")

    deleted = await event_store.cleanup(30)

    assert deleted == 1
    assert await event_store.get_event("old-processed") is None
    assert await event_store.get_event("old-unprocessed") is not None
    assert await event_store.get_event("recent-processed") is not None
