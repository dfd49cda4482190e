"""Event bus interfaces."""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Protocol

from orderhub.shared_kernel.domain_events import Event

EventHandler = Callable[[Event], Awaitable[Any]]


class BroadcastSink(Protocol):
    """Real-time fan-out target for events that arrive over Redis."""

    async def broadcast(self, message: Dict[str, Any]) -> None:
        ...


class DeadLetterSink(Protocol):
    """Receives events whose retrying handler gave up."""

    async def on_exhausted(self, event: Event, error: BaseException, attempts: int) -> None:
        ...
