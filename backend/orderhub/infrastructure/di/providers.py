"""Service registration for the DI container."""
from __future__ import annotations

import redis.asyncio as redis
from pymongo import AsyncMongoClient

from orderhub.core.config import Settings
from orderhub.domains.handler_manager import EventHandlerManager
from orderhub.domains.order.domain.payments import PaymentGateway, SimulatedPaymentGateway
from orderhub.infrastructure.broadcast import WebSocketBroadcaster
from orderhub.infrastructure.di.container import Container
from orderhub.infrastructure.di.scopes import Scope
from orderhub.infrastructure.event_bus import EventBus, StoreDeadLetterSink, SubscriptionOptions
from orderhub.infrastructure.event_store import EventStore


def configure_container(container: Container, settings: Settings) -> None:
    """Configure application dependencies."""

    # Clients
    container.register(
        AsyncMongoClient,
        lambda c: AsyncMongoClient(
            settings.MONGODB_URL,
            tz_aware=True,
            serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
        ),
        Scope.SINGLETON,
    )
    container.register(
        redis.Redis,
        lambda c: redis.from_url(settings.REDIS_URL, decode_responses=True),
        Scope.SINGLETON,
    )

    # Event infrastructure
    container.register(
        EventStore,
        lambda c: EventStore(c.resolve(AsyncMongoClient)[settings.MONGODB_DATABASE]),
        Scope.SINGLETON,
    )
    container.register(WebSocketBroadcaster, lambda c: WebSocketBroadcaster(), Scope.SINGLETON)
    container.register(
        EventBus,
        lambda c: EventBus(
            c.resolve(EventStore),
            c.resolve(redis.Redis),
            channel_prefix=settings.EVENT_CHANNEL_PREFIX,
            source=settings.EVENT_SOURCE,
            schema_version=settings.EVENT_SCHEMA_VERSION,
            validation_mode=settings.EVENT_VALIDATION_MODE,
            suppress_local_echo=settings.EVENT_SUPPRESS_LOCAL_ECHO,
            broadcast_sink=c.resolve(WebSocketBroadcaster),
            dead_letter_sink=(
                StoreDeadLetterSink(c.resolve(EventStore)) if settings.EVENT_DEAD_LETTER_TO_STORE else None
            ),
        ),
        Scope.SINGLETON,
    )

    # Domain handlers
    container.register(
        PaymentGateway,
        lambda c: SimulatedPaymentGateway(success_rate=settings.PAYMENT_SUCCESS_RATE),
        Scope.SINGLETON,
    )
    container.register(
        EventHandlerManager,
        lambda c: EventHandlerManager(
            c.resolve(EventBus),
            c.resolve(PaymentGateway),
            SubscriptionOptions(
                retry=True,
                max_retries=settings.EVENT_RETRY_MAX,
                retry_delay_ms=settings.EVENT_RETRY_DELAY_MS,
            ),
        ),
        Scope.SINGLETON,
    )


def build_container(settings: Settings) -> Container:
    """Return a freshly configured container."""
    container = Container()
    configure_container(container, settings)
    return container
