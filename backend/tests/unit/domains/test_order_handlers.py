import logging
import random

import pytest

from orderhub.domains.order.application.event_handlers import OrderEventHandlers
from orderhub.domains.order.domain.payments import PaymentResult, SimulatedPaymentGateway
from orderhub.shared_kernel.domain_events import Event, EventMetadata


class FixedGateway:
    def __init__(self, result):
        self.result = result
        self.calls = []

    async def attempt_payment(self, amount, method):
        self.calls.append((amount, method))
        return self.result


APPROVED = PaymentResult(success=True, transaction_id="txn_1")
DECLINED = PaymentResult(success=False, failure_reason="Insufficient funds")


def _order(**overrides):
    data = {
        "orderId": "o-1",
        "orderNumber": "ORD-1",
        "userId": "u-1",
        "items": [{"productId": "p-1", "quantity": 2}, {"productId": "p-2", "quantity": 1}],
        "totalAmount": 99.9,
        "paymentMethod": "card",
    }
    data.update(overrides)
    return data


async def _wire(event_bus, result=APPROVED):
    gateway = FixedGateway(result)
    handlers = OrderEventHandlers(event_bus, gateway)
    handlers.register()
    return handlers, gateway


@pytest.mark.asyncio
async def test_order_created_fans_out_with_shared_correlation(event_bus):
    _, gateway = await _wire(event_bus)

    order = await event_bus.publish("order.created", _order(), {"correlation_id": "corr-1"})
    chain = await event_bus.event_store.get_events_by_correlation_id("corr-1")

    assert [event.type for event in chain] == [
        "order.created",
        "notification.email.sent",
        "inventory.updated",
        "inventory.updated",
        "order.payment.processed",
        "notification.email.sent",
    ]
    assert gateway.calls == [(99.9, "card")]

    confirmation, first_item, second_item, payment, receipt = chain[1:]
    assert confirmation.data["template"] == "order_confirmation"
    assert [first_item.data["quantity"], second_item.data["quantity"]] == [-2, -1]
    assert first_item.data["operation"] == "order_created"
    assert first_item.data["reason"] == "Order created: ORD-1"
    for derived in (confirmation, first_item, second_item, payment):
        assert derived.causation_id == order.id
    assert receipt.causation_id == payment.id
    assert receipt.data["template"] == "payment_confirmed"
    assert payment.data["transactionId"] == "txn_1"
    assert payment.data["paymentAmount"] == 99.9
    assert payment.data["items"] == _order()["items"]


@pytest.mark.asyncio
async def test_declined_payment_restores_inventory(event_bus):
    await _wire(event_bus, DECLINED)

    await event_bus.publish("order.created", _order(), {"correlation_id": "corr-2"})
    chain = await event_bus.event_store.get_events_by_correlation_id("corr-2")

    failed = next(event for event in chain if event.type == "order.payment.failed")
    restocks = [
        event for event in chain
        if event.type == "inventory.updated" and event.data["operation"] == "payment_failed"
    ]
    assert failed.data["failureReason"] == "Insufficient funds"
    assert [event.data["quantity"] for event in restocks] == [2, 1]
    assert all(event.causation_id == failed.id for event in restocks)
    assert restocks[0].data["reason"] == "Payment failed for order: ORD-1"


@pytest.mark.asyncio
async def test_missing_order_number_skips_confirmation_only(event_bus, caplog):
    caplog.set_level(logging.WARNING)
    await _wire(event_bus)

    await event_bus.publish("order.created", _order(orderNumber=None), {"correlation_id": "corr-3"})
    chain = await event_bus.event_store.get_events_by_correlation_id("corr-3")

    templates = [event.data.get("template") for event in chain if event.type == "notification.email.sent"]
    assert "order_confirmation" not in templates
    assert [event.data["reason"] for event in chain if event.type == "inventory.updated"] == [
        "Order created: o-1",
        "Order created: o-1",
    ]
    assert "Skipping order confirmation" in caplog.text


@pytest.mark.asyncio
async def test_order_without_items_publishes_no_inventory_changes(event_bus):
    await _wire(event_bus)

    await event_bus.publish("order.created", _order(items=[]), {"correlation_id": "corr-4"})
    chain = await event_bus.event_store.get_events_by_correlation_id("corr-4")

    assert "inventory.updated" not in [event.type for event in chain]
    assert "order.payment.processed" in [event.type for event in chain]


@pytest.mark.asyncio
async def test_cancelled_order_returns_stock(event_bus):
    await _wire(event_bus)

    cancelled = await event_bus.publish(
        "order.cancelled",
        {"orderId": "o-1", "orderNumber": "ORD-1", "userId": "u-1", "reason": "changed mind",
         "items": [{"productId": "p-1", "quantity": 3}]},
        {"correlation_id": "corr-5"},
    )
    chain = await event_bus.event_store.get_events_by_correlation_id("corr-5")

    restock = next(event for event in chain if event.type == "inventory.updated")
    email = next(event for event in chain if event.type == "notification.email.sent")
    assert restock.data == {
        "productId": "p-1",
        "quantity": 3,
        "operation": "order_cancelled",
        "reason": "Order cancelled: ORD-1",
    }
    assert email.data["template"] == "order_cancelled"
    assert email.causation_id == cancelled.id


@pytest.mark.asyncio
async def test_order_updated_notifies_only_on_significant_fields(event_bus):
    await _wire(event_bus)

    await event_bus.publish(
        "order.updated",
        {"orderId": "o-1", "userId": "u-1", "updatedFields": ["notes"]},
        {"correlation_id": "quiet"},
    )
    await event_bus.publish(
        "order.updated",
        {"orderId": "o-1", "userId": "u-1", "updatedFields": ["status"]},
        {"correlation_id": "loud"},
    )

    assert len(await event_bus.event_store.get_events_by_correlation_id("quiet")) == 1
    assert len(await event_bus.event_store.get_events_by_correlation_id("loud")) == 2


def test_loyalty_points_are_floored():
    handlers = OrderEventHandlers(None, FixedGateway(APPROVED))
    event = Event(id="e-1", type="order.completed", data={"totalAmount": 99.9, "userId": "u-1"},
                  metadata=EventMetadata())

    assert handlers.loyalty_points(event) == 99
    assert handlers.loyalty_points(Event(id="e-2", type="order.completed", data={})) is None


@pytest.mark.asyncio
async def test_simulated_gateway_uses_success_rate():
    always = SimulatedPaymentGateway(success_rate=1.0, rng=random.Random(7))
    never = SimulatedPaymentGateway(success_rate=0.0, rng=random.Random(7))

    approved = await always.attempt_payment(10, "card")
    declined = await never.attempt_payment(10, "card")

    assert approved.success and approved.transaction_id.startswith("txn_")
    assert not declined.success and declined.failure_reason == "Insufficient funds"
    with pytest.raises(ValueError):
        SimulatedPaymentGateway(success_rate=1.5)
