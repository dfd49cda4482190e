"""Event handlers for the order context."""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Optional

from orderhub.domains.common import event_timestamp, follow_up_metadata
from orderhub.domains.order.domain.payments import PaymentGateway
from orderhub.infrastructure.event_bus import EventBus, SubscriptionOptions
from orderhub.shared_kernel.domain_events import Event, utcnow, format_timestamp
from orderhub.shared_kernel.event_types import InventoryEvents, NotificationEvents, OrderEvents

logger = logging.getLogger(__name__)

SIGNIFICANT_ORDER_FIELDS = frozenset({"status", "items", "shippingAddress", "totalAmount"})


def _stocked_items(items: Any) -> List[Dict[str, Any]]:
    if not isinstance(items, list):
        return []
    return [
        item
        for item in items
        if isinstance(item, dict) and item.get("productId") and item.get("quantity")
    ]


class OrderEventHandlers:
    """Reacts to order events and publishes notifications, inventory and payment events."""

    def __init__(
        self,
        event_bus: EventBus,
        payment_gateway: PaymentGateway,
        retry_options: Optional[SubscriptionOptions] = None,
    ) -> None:
        self._bus = event_bus
        self._payments = payment_gateway
        self._retry_options = retry_options or SubscriptionOptions(retry=True, max_retries=3, retry_delay_ms=1000)

    def register(self) -> List[str]:
        """Subscribe every reaction; returns the subscriber ids."""
        subscriber_ids = [
            self._bus.subscribe(OrderEvents.ORDER_CREATED, self.handle_order_created, self._retry_options),
            self._bus.subscribe(OrderEvents.ORDER_UPDATED, self.handle_order_updated),
            self._bus.subscribe(OrderEvents.ORDER_CANCELLED, self.handle_order_cancelled),
            self._bus.subscribe(OrderEvents.ORDER_COMPLETED, self.handle_order_completed),
            self._bus.subscribe(OrderEvents.ORDER_SHIPPED, self.handle_order_shipped),
            self._bus.subscribe(OrderEvents.ORDER_PAYMENT_PROCESSED, self.handle_payment_processed),
            self._bus.subscribe(OrderEvents.ORDER_PAYMENT_FAILED, self.handle_payment_failed),
        ]
        logger.info("Order event handlers initialized")
        return subscriber_ids

    # Event entry points

    async def handle_order_created(self, event: Event) -> None:
        data = event.data
        logger.info(
            "Processing order created event: %s",
            data.get("orderNumber"),
            extra={"event_id": event.id, "order_id": data.get("orderId"), "user_id": data.get("userId")},
        )
        await self.send_order_confirmation(event)
        await self.update_inventory(event)
        await self.process_payment(event)
        await self.create_order_analytics(event)
        await self.notify_fulfillment_center(event)
        logger.info("Order created event processed: %s", event.id)

    async def handle_order_updated(self, event: Event) -> None:
        updated_fields = event.data.get("updatedFields") or []
        logger.info(
            "Processing order updated event: %s",
            event.data.get("orderNumber"),
            extra={"event_id": event.id, "updated_fields": updated_fields},
        )
        if SIGNIFICANT_ORDER_FIELDS.intersection(updated_fields):
            await self._send_email(
                event,
                subject=f"Order Update - {event.data.get('orderNumber')}",
                template="order_updated",
                payload={"updatedFields": updated_fields, "updateTime": event_timestamp(event)},
                priority="normal",
            )
        self._record_analytics(event, "order_updated", updatedFields=updated_fields)

    async def handle_order_cancelled(self, event: Event) -> None:
        data = event.data
        logger.info(
            "Processing order cancelled event: %s",
            data.get("orderNumber"),
            extra={"event_id": event.id, "reason": data.get("reason")},
        )
        logger.debug(
            "Refund processed",
            extra={"order_id": data.get("orderId"), "refund_amount": data.get("refundAmount")},
        )
        await self._restock(event, data.get("items"), operation="order_cancelled",
                            reason=f"Order cancelled: {self._order_label(data)}")
        await self._send_email(
            event,
            subject=f"Order Cancelled - {data.get('orderNumber')}",
            template="order_cancelled",
            payload={"reason": data.get("reason"), "cancellationTime": event_timestamp(event)},
            priority="high",
        )
        self._record_analytics(event, "order_cancelled", reason=data.get("reason"))

    async def handle_order_completed(self, event: Event) -> None:
        data = event.data
        logger.info("Processing order completed event: %s", data.get("orderNumber"), extra={"event_id": event.id})
        await self._send_email(
            event,
            subject=f"Order Delivered - {data.get('orderNumber')}",
            template="order_completed",
            payload={"completionTime": event_timestamp(event)},
            priority="normal",
        )
        logger.debug("Review request created", extra={"user_id": data.get("userId"), "order_id": data.get("orderId")})
        self._record_analytics(event, "order_completed")
        self.loyalty_points(event)

    async def handle_order_shipped(self, event: Event) -> None:
        data = event.data
        logger.info("Processing order shipped event: %s", data.get("orderNumber"), extra={"event_id": event.id})
        await self._send_email(
            event,
            subject=f"Order Shipped - {data.get('orderNumber')}",
            template="order_shipped",
            payload={"shippedTime": event_timestamp(event), "trackingNumber": data.get("trackingNumber")},
            priority="normal",
        )
        logger.debug("Tracking info updated", extra={"order_id": data.get("orderId")})

    async def handle_payment_processed(self, event: Event) -> None:
        data = event.data
        logger.info(
            "Processing payment processed event: %s",
            data.get("orderNumber"),
            extra={"event_id": event.id, "payment_amount": data.get("paymentAmount")},
        )
        await self._send_email(
            event,
            subject=f"Payment Confirmed - {data.get('orderNumber')}",
            template="payment_confirmed",
            payload={"paymentAmount": data.get("paymentAmount"), "confirmationTime": event_timestamp(event)},
            priority="high",
        )
        logger.debug("Order status updated after payment", extra={"order_id": data.get("orderId")})
        self._record_analytics(event, "payment_processed", amount=data.get("paymentAmount"))

    async def handle_payment_failed(self, event: Event) -> None:
        data = event.data
        logger.info(
            "Processing payment failed event: %s",
            data.get("orderNumber"),
            extra={"event_id": event.id, "failure_reason": data.get("failureReason")},
        )
        await self._send_email(
            event,
            subject=f"Payment Failed - {data.get('orderNumber')}",
            template="payment_failed",
            payload={"failureReason": data.get("failureReason"), "failureTime": event_timestamp(event)},
            priority="high",
        )
        logger.debug("Order status updated after payment failure", extra={"order_id": data.get("orderId")})
        await self._restock(event, data.get("items"), operation="payment_failed",
                            reason=f"Payment failed for order: {self._order_label(data)}")

    # Reactions

    async def send_order_confirmation(self, event: Event) -> None:
        data = event.data
        user_id, order_number = data.get("userId"), data.get("orderNumber")
        if not user_id or not order_number:
            logger.warning(
                "Skipping order confirmation - missing required data",
                extra={"event_id": event.id, "has_user_id": bool(user_id), "has_order_number": bool(order_number)},
            )
            return
        await self._send_email(
            event,
            subject=f"Order Confirmation - {order_number}",
            template="order_confirmation",
            payload={
                "items": data.get("items") or [],
                "totalAmount": data.get("totalAmount"),
                "orderDate": event_timestamp(event),
            },
            priority="high",
        )

    async def update_inventory(self, event: Event) -> None:
        items = _stocked_items(event.data.get("items"))
        if not items:
            logger.warning("Skipping inventory update - no items found", extra={"event_id": event.id})
            return
        for item in items:
            await self._bus.publish(
                InventoryEvents.INVENTORY_UPDATED,
                {
                    "productId": item["productId"],
                    "quantity": -item["quantity"],
                    "operation": "order_created",
                    "reason": f"Order created: {self._order_label(event.data)}",
                },
                follow_up_metadata(event, event.data.get("userId")),
            )

    async def process_payment(self, event: Event) -> None:
        data = event.data
        amount = data.get("totalAmount")
        if amount is None:
            logger.warning("Skipping payment - no total amount", extra={"event_id": event.id})
            return
        method = data.get("paymentMethod")
        result = await self._payments.attempt_payment(amount, method)
        base = {
            "orderId": data.get("orderId"),
            "orderNumber": data.get("orderNumber"),
            "userId": data.get("userId"),
            "items": data.get("items") or [],
            "paymentAmount": amount,
            "paymentMethod": method,
        }
        metadata = follow_up_metadata(event, data.get("userId"))
        if result.success:
            await self._bus.publish(
                OrderEvents.ORDER_PAYMENT_PROCESSED,
                {**base, "transactionId": result.transaction_id, "processedAt": format_timestamp(utcnow())},
                metadata,
            )
        else:
            await self._bus.publish(
                OrderEvents.ORDER_PAYMENT_FAILED,
                {**base, "failureReason": result.failure_reason, "failedAt": format_timestamp(utcnow())},
                metadata,
            )

    async def create_order_analytics(self, event: Event) -> None:
        items = event.data.get("items") if isinstance(event.data.get("items"), list) else []
        categories = sorted({item.get("category") for item in items if isinstance(item, dict) and item.get("category")})
        self._record_analytics(
            event,
            "order_created",
            itemCount=len(items),
            totalAmount=event.data.get("totalAmount"),
            orderSource=event.metadata.source,
            categories=categories,
        )

    async def notify_fulfillment_center(self, event: Event) -> None:
        data = event.data
        logger.debug(
            "Fulfillment center notified",
            extra={
                "order_id": data.get("orderId"),
                "order_number": data.get("orderNumber"),
                "shipping_address": data.get("shippingAddress"),
                "priority": "standard",
            },
        )

    def loyalty_points(self, event: Event) -> Optional[int]:
        total = event.data.get("totalAmount")
        if not isinstance(total, (int, float)):
            logger.warning("Skipping loyalty points - no total amount", extra={"event_id": event.id})
            return None
        points = math.floor(total)
        logger.debug("Loyalty points processed", extra={"user_id": event.data.get("userId"), "points": points})
        return points

    # Helpers

    @staticmethod
    def _order_label(data: Dict[str, Any]) -> Any:
        return data.get("orderNumber") or data.get("orderId")

    async def _send_email(
        self,
        event: Event,
        *,
        subject: str,
        template: str,
        payload: Dict[str, Any],
        priority: str,
    ) -> None:
        user_id = event.data.get("userId")
        if not user_id:
            logger.warning(
                "Skipping %s notification - no userId",
                template,
                extra={"event_id": event.id},
            )
            return
        await self._bus.publish(
            NotificationEvents.EMAIL_SENT,
            {
                "userId": user_id,
                "subject": subject,
                "template": template,
                "data": {"orderNumber": event.data.get("orderNumber"), **payload},
                "priority": priority,
            },
            follow_up_metadata(event, user_id),
        )

    async def _restock(self, event: Event, items: Iterable[Any], *, operation: str, reason: str) -> None:
        for item in _stocked_items(items):
            await self._bus.publish(
                InventoryEvents.INVENTORY_UPDATED,
                {
                    "productId": item["productId"],
                    "quantity": item["quantity"],
                    "operation": operation,
                    "reason": reason,
                },
                follow_up_metadata(event, event.data.get("userId")),
            )

    def _record_analytics(self, event: Event, name: str, **properties: Any) -> Dict[str, Any]:
        record = {
            "orderId": event.data.get("orderId"),
            "userId": event.data.get("userId"),
            "event": name,
            "timestamp": event_timestamp(event),
            "properties": properties,
        }
        logger.debug("Order analytics recorded", extra={"analytics": record})
        return record
