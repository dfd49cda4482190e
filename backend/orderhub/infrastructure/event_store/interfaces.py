"""Event store interfaces."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

from orderhub.shared_kernel.domain_events import Event


class EventStoreBackend(ABC):
    """Abstract event store."""

    @abstractmethod
    async def initialize(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def save_event(self, event: Event) -> Event:
        raise NotImplementedError

    @abstractmethod
    async def get_event(self, event_id: str) -> Optional[Event]:
        raise NotImplementedError

    @abstractmethod
    async def get_events(
        self,
        event_type: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Event]:
        raise NotImplementedError

    @abstractmethod
    async def get_events_by_correlation_id(self, correlation_id: str) -> List[Event]:
        raise NotImplementedError

    @abstractmethod
    async def mark_event_as_processed(self, event_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def add_processing_error(
        self,
        event_id: str,
        error: Union[BaseException, str],
        retry_count: int = 1,
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get_unprocessed_events(self, limit: int = 100) -> List[Event]:
        raise NotImplementedError

    @abstractmethod
    async def get_event_stats(self) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    async def health_check(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def cleanup(self, older_than_days: int = 30) -> int:
        raise NotImplementedError
