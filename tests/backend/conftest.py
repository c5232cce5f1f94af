import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from stationv.core.pubsub import Connection
from stationv.core.router import RelayHub, hub
from stationv.main import app


class MockWebSocket:
    """Mock WebSocket recording every text frame the relay sends."""

    def __init__(self):
        self.sent_texts = []
        self.fail = False

    async def send_text(self, text: str):
        if self.fail:
            raise RuntimeError("Connection closed")
        self.sent_texts.append(text)


class FakeClient:
    """
    A relay client driven directly against a RelayHub (no network).
    ``send`` feeds one inbound frame; ``take`` returns and clears what arrived.
    """

    def __init__(self, relay: RelayHub):
        self.relay = relay
        self.ws = MockWebSocket()
        self.conn = Connection(self.ws)

    def send(self, **frame):
        self.relay.handle_raw(self.conn, json.dumps(frame))

    def send_raw(self, raw):
        self.relay.handle_raw(self.conn, raw)

    async def received(self) -> list[dict]:
        await self.conn.flush()
        return [json.loads(t) for t in self.ws.sent_texts]

    async def take(self) -> list[dict]:
        frames = await self.received()
        self.ws.sent_texts.clear()
        return frames

    async def register(self, nickname: str, **extra) -> str:
        self.send(type="register", nickname=nickname, **extra)
        frames = await self.take()
        return frames[0]["nickname"]

    def disconnect(self):
        self.relay.disconnect(self.conn)


@pytest.fixture(autouse=True)
def reset_hub():
    """Every test starts with an empty global relay."""
    hub.reset()
    yield
    hub.reset()


@pytest.fixture
def relay():
    """A fresh relay hub, independent of the global one."""
    return RelayHub(history_limit=100, allow_nick_suffix=True)


@pytest_asyncio.fixture
async def connect(relay):
    """
    Factory fixture creating attached FakeClients on the ``relay`` hub
    (or on the hub passed in).
    Writer tasks are shut down after the test.
    """
    clients: list[FakeClient] = []

    def _connect(on: RelayHub | None = None) -> FakeClient:
        target = on or relay
        c = FakeClient(target)
        c.conn.start()
        target.attach(c.conn)
        clients.append(c)
        return c

    yield _connect
    for c in clients:
        await c.conn.close()


@pytest_asyncio.fixture
async def client():
    """
    Provide an HTTPX AsyncClient bound to the FastAPI app.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client
