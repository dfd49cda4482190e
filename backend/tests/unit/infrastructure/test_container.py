import pytest

from orderhub.core.config import Settings
from orderhub.domains.handler_manager import EventHandlerManager
from orderhub.domains.order.domain.payments import PaymentGateway, SimulatedPaymentGateway
from orderhub.infrastructure.broadcast import WebSocketBroadcaster
from orderhub.infrastructure.di import build_container
from orderhub.infrastructure.di.container import Container
from orderhub.infrastructure.di.scopes import Scope
from orderhub.infrastructure.event_bus import EventBus
from orderhub.infrastructure.event_store import EventStore


class IService:
    pass


class ConcreteService(IService):
    pass


def test_singleton_returns_same_instance():
    container = Container()
    container.register(IService, lambda c: ConcreteService(), Scope.SINGLETON)
    instance1 = container.resolve(IService)
    instance2 = container.resolve(IService)
    assert instance1 is instance2


def test_transient_returns_new_instance():
    container = Container()
    container.register(IService, lambda c: ConcreteService(), Scope.TRANSIENT)
    instance1 = container.resolve(IService)
    instance2 = container.resolve(IService)
    assert instance1 is not instance2


def test_register_instance_and_unknown_interface():
    container = Container()
    service = ConcreteService()
    container.register_instance(IService, service)

    assert container.resolve(IService) is service
    assert container.resolved_singletons() == {IService: service}
    with pytest.raises(KeyError, match="ConcreteService"):
        container.resolve(ConcreteService)


def test_providers_register_every_service():
    container = build_container(Settings(PAYMENT_SUCCESS_RATE=1.0))

    for interface in (EventStore, EventBus, WebSocketBroadcaster, PaymentGateway, EventHandlerManager):
        assert container.is_registered(interface)

    gateway = container.resolve(PaymentGateway)
    assert isinstance(gateway, SimulatedPaymentGateway)
    assert gateway.success_rate == 1.0


def test_handler_manager_shares_the_bus(mongo_db, redis_client):
    container = build_container(Settings())
    container.register_instance(EventStore, EventStore(mongo_db))
    container.register_instance(EventBus, EventBus(container.resolve(EventStore), redis_client))

    manager = container.resolve(EventHandlerManager)

    assert manager.is_ready() is False
    assert container.resolve(EventBus).event_store is container.resolve(EventStore)
