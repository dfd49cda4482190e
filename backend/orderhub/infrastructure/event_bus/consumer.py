"""Redis pub/sub listener that feeds inbound events back to the bus."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from redis.exceptions import RedisError

from orderhub.shared_kernel.domain_events import Event

logger = logging.getLogger(__name__)

Dispatcher = Callable[[str, Event], Awaitable[None]]


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class RedisEventListener:
    """Pattern-subscribes to ``<prefix>:*`` and dispatches every parsed event."""

    def __init__(
        self,
        redis_client: Any,
        dispatch: Dispatcher,
        channel_prefix: str = "events",
    ) -> None:
        self._redis = redis_client
        self._dispatch = dispatch
        self._channel_prefix = channel_prefix
        self._pubsub: Any = None
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def pattern(self) -> str:
        return f"{self._channel_prefix}:*"

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.psubscribe(self.pattern)
        self._pubsub = pubsub
        self._task = asyncio.create_task(self._run())
        logger.info("Redis event subscriptions set up", extra={"pattern": self.pattern})

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._pubsub is not None:
            await self._pubsub.punsubscribe(self.pattern)
            await self._pubsub.aclose()
            self._pubsub = None

    async def _run(self) -> None:
        try:
            async for message in self._pubsub.listen():
                if message.get("type") != "pmessage":
                    continue
                await self.handle_message(message)
        except RedisError:
            logger.exception("Redis event listener stopped")

    async def handle_message(self, message: Dict[str, Any]) -> bool:
        """Parse one pub/sub message and dispatch it. Returns False when dropped."""
        channel = _decode(message.get("channel"))
        prefix = f"{self._channel_prefix}:"
        event_type = channel[len(prefix):] if channel.startswith(prefix) else channel
        try:
            event = Event.from_json(message.get("data"))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            logger.error("Error parsing Redis event", exc_info=True, extra={"channel": channel})
            return False
        await self._dispatch(event_type, event)
        return True
