"""Registry for local event subscriptions."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union
import uuid

from orderhub.shared_kernel.domain_events import utcnow
from .interfaces import EventHandler


@dataclass(frozen=True)
class SubscriptionOptions:
    retry: bool = False
    max_retries: int = 3
    retry_delay_ms: int = 1000

    @classmethod
    def coerce(cls, options: Union["SubscriptionOptions", Mapping[str, Any], None]) -> "SubscriptionOptions":
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        defaults = cls()
        max_retries = options.get("max_retries", options.get("maxRetries"))
        retry_delay = options.get("retry_delay_ms", options.get("retryDelay"))
        return cls(
            retry=bool(options.get("retry", False)),
            max_retries=int(max_retries) if max_retries else defaults.max_retries,
            retry_delay_ms=int(retry_delay) if retry_delay else defaults.retry_delay_ms,
        )


@dataclass
class Subscription:
    event_type: str
    handler: EventHandler
    options: SubscriptionOptions = field(default_factory=SubscriptionOptions)
    subscriber_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)


class SubscriberRegistry:
    def __init__(self) -> None:
        self._by_type: Dict[str, List[Subscription]] = {}
        self._by_id: Dict[str, Subscription] = {}

    def register(self, subscription: Subscription) -> None:
        if subscription.event_type not in self._by_type:
            self._by_type[subscription.event_type] = []
        self._by_type[subscription.event_type].append(subscription)
        self._by_id[subscription.subscriber_id] = subscription

    def remove(self, subscriber_id: str) -> Optional[Subscription]:
        subscription = self._by_id.pop(subscriber_id, None)
        if subscription is None:
            return None
        remaining = [
            item
            for item in self._by_type.get(subscription.event_type, [])
            if item.subscriber_id != subscriber_id
        ]
        if remaining:
            self._by_type[subscription.event_type] = remaining
        else:
            self._by_type.pop(subscription.event_type, None)
        return subscription

    def get_handlers(self, event_type: str) -> List[Subscription]:
        return list(self._by_type.get(event_type, []))

    def subscriptions(self) -> List[Subscription]:
        return list(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)
