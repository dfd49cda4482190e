import pytest

from orderhub.infrastructure.broadcast import WebSocketBroadcaster


class DummyWebSocket:
    def __init__(self, broken=False):
        self.accepted = False
        self.sent = []
        self.broken = broken

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(message)


@pytest.mark.asyncio
async def test_broadcast_reaches_every_client():
    broadcaster = WebSocketBroadcaster()
    first, second = DummyWebSocket(), DummyWebSocket()
    await broadcaster.connect(first)
    await broadcaster.connect(second)

    await broadcaster.broadcast({"type": "order.created", "data": {"id": "e-1"}})

    assert first.accepted and second.accepted
    assert first.sent == second.sent == [{"type": "order.created", "data": {"id": "e-1"}}]


@pytest.mark.asyncio
async def test_failing_clients_are_dropped():
    broadcaster = WebSocketBroadcaster()
    healthy = DummyWebSocket()
    await broadcaster.connect(healthy)
    await broadcaster.connect(DummyWebSocket(broken=True))

    await broadcaster.broadcast({"type": "user.created", "data": {}})

    assert len(broadcaster) == 1
    assert healthy.sent == [{"type": "user.created", "data": {}}]


@pytest.mark.asyncio
async def test_disconnect_is_idempotent():
    broadcaster = WebSocketBroadcaster()
    connection_id = await broadcaster.connect(DummyWebSocket())

    broadcaster.disconnect(connection_id)
    broadcaster.disconnect(connection_id)

    assert len(broadcaster) == 0
