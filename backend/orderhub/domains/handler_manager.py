"""Wires the domain handler groups onto the event bus."""
from __future__ import annotations

import logging
from typing import List, Optional

from orderhub.domains.order.application.event_handlers import OrderEventHandlers
from orderhub.domains.order.domain.payments import PaymentGateway
from orderhub.domains.user.application.event_handlers import UserEventHandlers
from orderhub.infrastructure.event_bus import EventBus, SubscriptionOptions

logger = logging.getLogger(__name__)


class EventHandlerManager:
    def __init__(
        self,
        event_bus: EventBus,
        payment_gateway: PaymentGateway,
        retry_options: Optional[SubscriptionOptions] = None,
    ) -> None:
        self._bus = event_bus
        self._payment_gateway = payment_gateway
        self._retry_options = retry_options
        self.handlers: List[object] = []
        self._subscriber_ids: List[str] = []
        self._initialized = False

    def initialize(self) -> None:
        """Subscribe both handler groups; the bus must already be initialized."""
        if self._initialized:
            return
        logger.info("Initializing event handlers...")
        user_handlers = UserEventHandlers(self._bus, self._retry_options)
        order_handlers = OrderEventHandlers(self._bus, self._payment_gateway, self._retry_options)
        try:
            for group in (user_handlers, order_handlers):
                self._subscriber_ids.extend(group.register())
                self.handlers.append(group)
        except Exception:
            logger.exception("Failed to initialize event handlers")
            self.shutdown()
            raise
        self._initialized = True
        logger.info("Event handlers initialized successfully. Total handlers: %d", len(self.handlers))

    def get_handler_count(self) -> int:
        return len(self.handlers)

    @property
    def subscriber_ids(self) -> List[str]:
        return list(self._subscriber_ids)

    def is_ready(self) -> bool:
        return self._initialized

    def shutdown(self) -> None:
        if self._bus.is_initialized:
            for subscriber_id in self._subscriber_ids:
                self._bus.unsubscribe(subscriber_id)
        self._subscriber_ids.clear()
        self.handlers.clear()
        self._initialized = False
