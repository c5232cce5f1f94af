# stationv/core/pubsub.py
"""
PubSub module for relay frame delivery.

Each live WebSocket is wrapped in a ``Connection`` that owns an outbound
mailbox drained by its own writer task. Publishing only enqueues, so:
  - the relay never awaits a network send while holding state
  - frames reach one recipient in exactly the order they were published
  - a slow or dead recipient cannot delay or break delivery to the others
"""
import asyncio
import json
import logging
import uuid
from typing import Iterable, Optional, Protocol

from stationv.core.errors import DeliveryFailure

logger = logging.getLogger(__name__)

_CLOSE = None  # Mailbox sentinel: stop the writer task


class TextSocket(Protocol):
    """The part of ``starlette.websockets.WebSocket`` the relay writes to."""

    async def send_text(self, data: str) -> None: ...


class Connection:
    """
    A live transport session.

    The router only ever calls ``publish``; the WebSocket endpoint calls
    ``start`` after accept and ``close`` once the socket is gone.
    """

    def __init__(self, ws: TextSocket, connection_id: Optional[str] = None):
        self.ws = ws
        self.id = connection_id or uuid.uuid4().hex
        self.closed = False  # No more frames are accepted
        self.broken = False  # A send failed; remaining frames are discarded
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"<Connection {self.id[:8]}>"

    def start(self) -> None:
        """Spawn the writer task. Must be called from the running event loop."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain(), name=f"relay-writer-{self.id[:8]}")

    def publish(self, text: str) -> None:
        """Queue an already-serialised frame. Never blocks, never raises."""
        if self.closed:
            logger.debug("[pubsub] %r closed, frame dropped", self)
            return
        self._outbox.put_nowait(text)

    async def flush(self) -> None:
        """Wait until every queued frame has been sent (or discarded)."""
        await self._outbox.join()

    async def close(self) -> None:
        """Stop accepting frames, let the writer finish the backlog and exit."""
        if self.closed:
            return
        self.closed = True
        self._outbox.put_nowait(_CLOSE)
        if self._writer is not None:
            await self._writer

    async def _send(self, text: str) -> None:
        try:
            await self.ws.send_text(text)
        except Exception as e:
            raise DeliveryFailure(self.id, e) from e

    async def _drain(self) -> None:
        while True:
            text = await self._outbox.get()
            try:
                if text is _CLOSE:
                    return
                if self.broken:
                    continue
                await self._send(text)
            except DeliveryFailure as e:
                # Transport is gone; the receive loop will notice and run the disconnect.
                self.broken = True
                logger.warning("[pubsub] %s", e)
            finally:
                self._outbox.task_done()


# -------- publish --------
def encode(frame: dict) -> str:
    """Serialise a frame once so every recipient gets the identical payload."""
    return json.dumps(frame)


def pub_unicast(conn: Connection, frame: dict) -> None:
    conn.publish(encode(frame))


def pub_many(conns: Iterable[Connection], frame: dict) -> int:
    """
    Publish one frame to several connections.

    Returns the number of connections it was queued for.
    """
    msg = encode(frame)
    count = 0
    for conn in conns:
        conn.publish(msg)
        count += 1
    return count
