"""Publish/subscribe core: persist, fan out over Redis, deliver locally."""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Set, Union

from redis.exceptions import RedisError

from orderhub.infrastructure.event_store.interfaces import EventStoreBackend
from orderhub.infrastructure.observability.metrics import (
    EVENTS_PUBLISHED_TOTAL,
    EVENT_DEAD_LETTERS_TOTAL,
    EVENT_HANDLER_FAILURES_TOTAL,
    EVENT_HANDLER_RETRIES_TOTAL,
    EVENT_PUBLISH_DURATION,
    EVENT_PUBLISH_FAILURES_TOTAL,
    EVENT_SUBSCRIBERS,
)
from orderhub.infrastructure.resilience.retry import retry_after_failure
from orderhub.shared_kernel.domain_events import DEFAULT_SOURCE, DEFAULT_VERSION, Event
from orderhub.shared_kernel.event_types import (
    create_event_metadata,
    get_event_category,
    validate_event_data,
)
from orderhub.shared_kernel.exceptions import EventValidationError, NotInitializedError
from .consumer import RedisEventListener
from .handlers import SubscriberRegistry, Subscription, SubscriptionOptions
from .interfaces import BroadcastSink, DeadLetterSink, EventHandler

logger = logging.getLogger(__name__)

VALIDATION_WARN = "warn"
VALIDATION_REJECT = "reject"


class BusState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class EventBus:
    """In-process subscriber registry backed by an event store and Redis pub/sub.

    ``publish`` persists first, then publishes on ``<prefix>:<type>``, then
    awaits local subscribers in registration order. Events coming back from
    Redis (including this process's own) are delivered locally again and
    forwarded to the broadcast sink, so without ``suppress_local_echo`` a
    local subscriber sees each locally published event twice.
    """

    def __init__(
        self,
        event_store: EventStoreBackend,
        redis_client: Any,
        *,
        channel_prefix: str = "events",
        source: str = DEFAULT_SOURCE,
        schema_version: str = DEFAULT_VERSION,
        validation_mode: str = VALIDATION_WARN,
        suppress_local_echo: bool = False,
        broadcast_sink: Optional[BroadcastSink] = None,
        dead_letter_sink: Optional[DeadLetterSink] = None,
    ) -> None:
        if validation_mode not in (VALIDATION_WARN, VALIDATION_REJECT):
            raise ValueError(f"Unknown validation mode: {validation_mode}")
        self._event_store = event_store
        self._redis = redis_client
        self._channel_prefix = channel_prefix
        self._source = source
        self._schema_version = schema_version
        self._validation_mode = validation_mode
        self._suppress_local_echo = suppress_local_echo
        self._broadcast_sink = broadcast_sink
        self._dead_letter_sink = dead_letter_sink
        self._registry = SubscriberRegistry()
        self._listener: Optional[RedisEventListener] = None
        self._retry_tasks: Set[asyncio.Task[None]] = set()
        self.state = BusState.UNINITIALIZED

    @property
    def is_initialized(self) -> bool:
        return self.state is BusState.READY

    @property
    def event_store(self) -> EventStoreBackend:
        return self._event_store

    def channel_for(self, event_type: str) -> str:
        return f"{self._channel_prefix}:{event_type}"

    def _listener_running(self) -> bool:
        return self._listener is not None and self._listener.is_running

    def _ensure_ready(self) -> None:
        if self.state is not BusState.READY:
            raise NotInitializedError()

    async def initialize(self) -> None:
        if self.state is BusState.READY:
            return
        self.state = BusState.INITIALIZING
        listener = RedisEventListener(self._redis, self._handle_redis_event, self._channel_prefix)
        try:
            await self._event_store.initialize()
            await listener.start()
        except Exception:
            self.state = BusState.UNINITIALIZED
            logger.exception("Failed to initialize EventBus")
            raise
        self._listener = listener
        self.state = BusState.READY
        logger.info("EventBus initialized successfully")

    async def shutdown(self) -> None:
        if self._listener is not None:
            await self._listener.stop()
            self._listener = None
        await self.drain()
        self.state = BusState.UNINITIALIZED
        logger.info("EventBus stopped")

    async def drain(self) -> None:
        """Wait for every scheduled retry loop to finish."""
        while self._retry_tasks:
            await asyncio.gather(*list(self._retry_tasks), return_exceptions=True)

    def _build_event(
        self,
        event_type: str,
        data: Mapping[str, Any],
        metadata: Optional[Mapping[str, Any]],
    ) -> Event:
        validation = validate_event_data(event_type, data)
        if not validation.valid:
            if self._validation_mode == VALIDATION_REJECT:
                raise EventValidationError(
                    f"Invalid event data: {', '.join(validation.errors)}",
                    code="INVALID_EVENT_DATA",
                    details={"event_type": event_type, "errors": validation.errors},
                )
            logger.warning(
                "Event data failed validation for %s: %s",
                event_type,
                "; ".join(validation.errors),
                extra={"event_type": event_type},
            )

        overrides: Dict[str, Any] = dict(metadata or {})
        # The bus owns the creation instant.
        overrides.pop("timestamp", None)
        overrides["source"] = overrides.get("source") or self._source
        overrides["version"] = overrides.get("version") or self._schema_version
        overrides["category"] = overrides.get("category") or get_event_category(event_type)

        return Event(
            id=str(uuid.uuid4()),
            type=event_type,
            data=dict(data),
            metadata=create_event_metadata(**overrides),
        )

    async def publish(
        self,
        event_type: str,
        data: Mapping[str, Any],
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Event:
        self._ensure_ready()
        started = time.perf_counter()
        event = self._build_event(event_type, data, metadata)

        try:
            await self._event_store.save_event(event)
        except Exception:
            EVENT_PUBLISH_FAILURES_TOTAL.labels(event_type, "store").inc()
            logger.exception("Failed to publish event %s", event_type, extra={"event_id": event.id})
            raise

        try:
            await self._redis.publish(self.channel_for(event_type), event.to_json())
        except RedisError:
            EVENT_PUBLISH_FAILURES_TOTAL.labels(event_type, "transport").inc()
            logger.exception(
                "Event %s stored but not broadcast",
                event.id,
                extra={"event_type": event_type},
            )
            raise

        if not (self._suppress_local_echo and self._listener_running()):
            await self._emit_local(event_type, event)

        EVENTS_PUBLISHED_TOTAL.labels(event_type).inc()
        EVENT_PUBLISH_DURATION.labels(event_type).observe(time.perf_counter() - started)
        logger.info(
            "Event published: %s",
            event_type,
            extra={"event_id": event.id, "correlation_id": event.correlation_id},
        )
        return event

    async def _emit_local(self, event_type: str, event: Event) -> None:
        for subscription in self._registry.get_handlers(event_type):
            await self._invoke(subscription, event)

    async def _invoke(self, subscription: Subscription, event: Event) -> None:
        try:
            await subscription.handler(event)
        except Exception:
            EVENT_HANDLER_FAILURES_TOTAL.labels(subscription.event_type).inc()
            logger.error(
                "Error in event handler for %s",
                subscription.event_type,
                exc_info=True,
                extra={"event_id": event.id, "subscriber_id": subscription.subscriber_id},
            )
            if subscription.options.retry:
                self._schedule_retry(subscription, event)

    def _schedule_retry(self, subscription: Subscription, event: Event) -> None:
        task = asyncio.create_task(self._retry(subscription, event))
        self._retry_tasks.add(task)
        task.add_done_callback(self._retry_tasks.discard)

    async def _retry(self, subscription: Subscription, event: Event) -> None:
        options = subscription.options

        async def attempt(target: Event) -> Any:
            EVENT_HANDLER_RETRIES_TOTAL.labels(subscription.event_type).inc()
            return await subscription.handler(target)

        def on_attempt_failed(number: int, exc: BaseException) -> None:
            logger.warning(
                "Event handler failed on retry %d",
                number,
                extra={"event_id": event.id, "attempt": number, "error": str(exc)},
            )

        try:
            number, _ = await retry_after_failure(
                attempt,
                event,
                retries=options.max_retries,
                delay=options.retry_delay_ms / 1000,
                on_attempt_failed=on_attempt_failed,
            )
        except Exception as exc:
            EVENT_DEAD_LETTERS_TOTAL.labels(subscription.event_type).inc()
            logger.error(
                "Event handler failed after %d retries",
                options.max_retries,
                extra={"event_id": event.id, "subscriber_id": subscription.subscriber_id},
            )
            await self._dead_letter(event, exc, options.max_retries)
            return
        logger.info("Event handler succeeded on retry %d", number, extra={"event_id": event.id})

    async def _dead_letter(self, event: Event, error: BaseException, attempts: int) -> None:
        if self._dead_letter_sink is None:
            return
        try:
            await self._dead_letter_sink.on_exhausted(event, error, attempts)
        except Exception:
            logger.exception("Dead-letter sink failed", extra={"event_id": event.id})

    async def _handle_redis_event(self, event_type: str, event: Event) -> None:
        await self._emit_local(event_type, event)
        if self._broadcast_sink is None:
            return
        try:
            await self._broadcast_sink.broadcast({"type": event_type, "data": event.to_dict()})
        except Exception:
            logger.exception("Broadcast of %s failed", event_type, extra={"event_id": event.id})

    def subscribe(
        self,
        event_type: str,
        handler: EventHandler,
        options: Union[SubscriptionOptions, Mapping[str, Any], None] = None,
    ) -> str:
        self._ensure_ready()
        subscription = Subscription(
            event_type=event_type,
            handler=handler,
            options=SubscriptionOptions.coerce(options),
        )
        self._registry.register(subscription)
        EVENT_SUBSCRIBERS.set(len(self._registry))
        logger.info(
            "Subscribed to event: %s",
            event_type,
            extra={"subscriber_id": subscription.subscriber_id},
        )
        return subscription.subscriber_id

    def unsubscribe(self, subscriber_id: str) -> None:
        self._ensure_ready()
        subscription = self._registry.remove(subscriber_id)
        if subscription is None:
            return
        EVENT_SUBSCRIBERS.set(len(self._registry))
        logger.info(
            "Unsubscribed from event: %s",
            subscription.event_type,
            extra={"subscriber_id": subscriber_id},
        )

    async def get_event_history(self, event_type: str, limit: int = 100) -> List[Event]:
        self._ensure_ready()
        return await self._event_store.get_events(event_type, limit)

    def get_subscribers(self) -> List[Dict[str, Any]]:
        self._ensure_ready()
        return [
            {
                "id": subscription.subscriber_id,
                "eventType": subscription.event_type,
                "createdAt": subscription.created_at,
            }
            for subscription in self._registry.subscriptions()
        ]

    async def _redis_healthy(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError:
            logger.warning("Redis ping failed", exc_info=True)
            return False

    async def health_check(self) -> Dict[str, Any]:
        redis_ok = await self._redis_healthy()
        if self._listener is not None and not self._listener_running():
            logger.warning("Redis event listener is not running")
            redis_ok = False
        store_ok = await self._event_store.health_check()
        return {
            "status": "healthy" if redis_ok and store_ok else "unhealthy",
            "redis": redis_ok,
            "eventStore": store_ok,
            "subscribers": len(self._registry),
            "initialized": self.is_initialized,
        }
