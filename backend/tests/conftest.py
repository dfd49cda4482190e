import asyncio
import copy
import os
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio
from bson import ObjectId
from pymongo.errors import AutoReconnect, DuplicateKeyError, ServerSelectionTimeoutError
from redis.exceptions import ConnectionError as RedisConnectionError

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("MONGODB_DATABASE", "orderhub_test")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("STRUCTURED_LOGGING_ENABLED", "false")

from orderhub.infrastructure.event_bus import EventBus  # noqa: E402
from orderhub.infrastructure.event_store import EventStore  # noqa: E402


_MISSING = object()


def _lookup(document, dotted_key):
    value = document
    for part in dotted_key.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _matches(document, query):
    for key, condition in query.items():
        value = _lookup(document, key)
        if isinstance(condition, dict) and any(op.startswith("$") for op in condition):
            if value is _MISSING:
                return False
            for op, operand in condition.items():
                if op == "$gte" and not value >= operand:
                    return False
                if op == "$lte" and not value <= operand:
                    return False
                if op == "$lt" and not value < operand:
                    return False
                if op == "$gt" and not value > operand:
                    return False
        elif (None if value is _MISSING else value) != condition:
            return False
    return True


def _project(document, projection):
    result = copy.deepcopy(document)
    if projection and projection.get("_id") == 0:
        result.pop("_id", None)
    return result


class DummyCursor:
    def __init__(self, documents, projection=None):
        self._documents = list(documents)
        self._projection = projection

    def sort(self, key_or_list, direction=1):
        keys = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction)]
        # Mongo returns sort-key ties in no particular order; never insertion order here.
        self._documents.reverse()
        for key, key_direction in reversed(keys):
            self._documents.sort(key=lambda doc: _lookup(doc, key), reverse=key_direction < 0)
        return self

    def skip(self, count):
        self._documents = self._documents[count:]
        return self

    def limit(self, count):
        if count:
            self._documents = self._documents[:count]
        return self

    async def to_list(self, length=None):
        documents = [_project(document, self._projection) for document in self._documents]
        return documents if length is None else documents[:length]


class DummyCollection:
    """In-memory stand-in for a pymongo ``AsyncCollection``."""

    def __init__(self):
        self.documents = []
        self.indexes = []
        self.fail_writes = False

    async def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))
        return kwargs.get("name")

    async def insert_one(self, document):
        if self.fail_writes:
            raise AutoReconnect("connection lost")
        if any(existing["id"] == document["id"] for existing in self.documents):
            raise DuplicateKeyError(f"E11000 duplicate key error id: {document['id']}")
        stored = copy.deepcopy(document)
        stored["_id"] = ObjectId()
        self.documents.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    async def find_one(self, query, projection=None):
        for document in self.documents:
            if _matches(document, query):
                return _project(document, projection)
        return None

    def find(self, query, projection=None):
        return DummyCursor((doc for doc in self.documents if _matches(doc, query)), projection)

    async def update_one(self, query, update):
        for document in self.documents:
            if _matches(document, query):
                for key, value in update.get("$set", {}).items():
                    document[key] = value
                for key, value in update.get("$push", {}).items():
                    document.setdefault(key, []).append(copy.deepcopy(value))
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def count_documents(self, query):
        return sum(1 for document in self.documents if _matches(document, query))

    async def delete_many(self, query):
        kept = [document for document in self.documents if not _matches(document, query)]
        deleted = len(self.documents) - len(kept)
        self.documents = kept
        return SimpleNamespace(deleted_count=deleted)

    async def aggregate(self, pipeline):
        # Only the per-type stats pipeline used by EventStore.get_event_stats.
        groups = {}
        for document in self.documents:
            group = groups.setdefault(
                document["type"],
                {"_id": document["type"], "count": 0, "processed": 0, "unprocessed": 0, "lastEvent": None},
            )
            group["count"] += 1
            if document.get("processed"):
                group["processed"] += 1
            else:
                group["unprocessed"] += 1
            timestamp = document["metadata"]["timestamp"]
            if group["lastEvent"] is None or timestamp > group["lastEvent"]:
                group["lastEvent"] = timestamp
        return DummyCursor(sorted(groups.values(), key=lambda group: group["count"], reverse=True))


class DummyDatabase:
    def __init__(self):
        self.collections = {}
        self.reachable = True

    def __getitem__(self, name):
        return self.collections.setdefault(name, DummyCollection())

    async def command(self, name):
        if not self.reachable:
            raise ServerSelectionTimeoutError("no servers available")
        return {"ok": 1.0}


class DummyPubSub:
    def __init__(self, redis_client):
        self._redis = redis_client
        self.patterns = []
        self.closed = False
        self.queue = asyncio.Queue()

    async def psubscribe(self, *patterns):
        self.patterns.extend(patterns)
        self._redis.pubsubs.append(self)

    async def punsubscribe(self, *patterns):
        self.patterns = [pattern for pattern in self.patterns if pattern not in patterns]

    async def aclose(self):
        self.closed = True
        if self in self._redis.pubsubs:
            self._redis.pubsubs.remove(self)

    def fail(self, error):
        self.queue.put_nowait(error)

    async def listen(self):
        while True:
            message = await self.queue.get()
            if isinstance(message, BaseException):
                raise message
            yield message


class DummyRedis:
    """Pub/sub double; published messages loop back to pattern subscribers."""

    def __init__(self, loopback=True):
        self.loopback = loopback
        self.published = []
        self.pubsubs = []
        self.available = True

    def pubsub(self):
        return DummyPubSub(self)

    async def publish(self, channel, message):
        if not self.available:
            raise RedisConnectionError("Redis unavailable")
        self.published.append((channel, message))
        receivers = 0
        if self.loopback:
            for pubsub in self.pubsubs:
                for pattern in pubsub.patterns:
                    if channel.startswith(pattern.rstrip("*")):
                        pubsub.queue.put_nowait(
                            {"type": "pmessage", "pattern": pattern, "channel": channel, "data": message}
                        )
                        receivers += 1
        return receivers

    async def ping(self):
        if not self.available:
            raise RedisConnectionError("Redis unavailable")
        return True


@pytest.fixture
def mongo_db():
    return DummyDatabase()


@pytest.fixture
def redis_client():
    return DummyRedis(loopback=False)


@pytest_asyncio.fixture
async def event_store(mongo_db):
    store = EventStore(mongo_db)
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def event_bus(mongo_db, redis_client):
    bus = EventBus(EventStore(mongo_db), redis_client)
    await bus.initialize()
    yield bus
    await bus.shutdown()


@pytest.fixture
def looping_redis():
    return DummyRedis(loopback=True)
