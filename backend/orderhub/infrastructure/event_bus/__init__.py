"""Event bus infrastructure."""

from .interfaces import BroadcastSink, DeadLetterSink, EventHandler
from .handlers import SubscriberRegistry, Subscription, SubscriptionOptions
from .consumer import RedisEventListener
from .dead_letter import StoreDeadLetterSink
from .bus import BusState, EventBus

__all__ = [
    "BroadcastSink",
    "DeadLetterSink",
    "EventHandler",
    "SubscriberRegistry",
    "Subscription",
    "SubscriptionOptions",
    "RedisEventListener",
    "StoreDeadLetterSink",
    "BusState",
    "EventBus",
]
