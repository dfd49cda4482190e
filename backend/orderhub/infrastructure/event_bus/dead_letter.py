"""Dead-letter sinks for exhausted handler retries."""
from __future__ import annotations

import logging

from orderhub.infrastructure.event_store.interfaces import EventStoreBackend
from orderhub.shared_kernel.domain_events import Event

logger = logging.getLogger(__name__)


class StoreDeadLetterSink:
    """Records terminal handler failures in the event's ``processingErrors``."""

    def __init__(self, event_store: EventStoreBackend) -> None:
        self._event_store = event_store

    async def on_exhausted(self, event: Event, error: BaseException, attempts: int) -> None:
        await self._event_store.add_processing_error(event.id, error, retry_count=attempts)
        logger.info(
            "Dead-lettered event %s into the event store",
            event.id,
            extra={"event_type": event.type, "attempts": attempts},
        )
