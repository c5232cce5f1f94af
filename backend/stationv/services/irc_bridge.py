# stationv/services/irc_bridge.py
"""
Upstream IRC bridge.

A client that registers with a ``config`` frame naming a ``server`` gets its
own session on that IRC network:
- ``connecting`` right away, ``connected`` once the network welcomes us,
  then the config's channels are joined upstream
- the client's join / part / message actions are mirrored upstream
- what the network says in those channels comes back to that client only
- ``disconnect`` or a closed transport ends the session with a QUIT

Built on the ``irc`` package's asyncio reactor. One reactor serves every
session; its handlers find the session by the upstream connection object.
Handlers run on the event loop and never await, like the relay's own.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set

from irc.client import Event, ServerConnectionError
from irc.client_aio import AioConnection, AioReactor
from irc.connection import AioFactory
from pydantic import BaseModel

from stationv.config import settings
from stationv.core import pubsub
from stationv.core.errors import BridgeUnavailable
from stationv.core.pubsub import Connection
from stationv.models import Message, MessageIdSequence
from stationv.schemas.channel import MessageOut
from stationv.schemas.events import (
    BridgeStatusEvent,
    ErrorEvent,
    MembershipEvent,
    MessageEvent,
    UpstreamJoinedEvent,
    to_wire,
)

logger = logging.getLogger(__name__)

# Leaves room for the "PRIVMSG <channel> :" prefix inside IRC's 512-byte line
MAX_TEXT_BYTES = 400


def split_for_irc(content: str, limit: int = MAX_TEXT_BYTES) -> Iterator[str]:
    """Yield IRC-sendable pieces of ``content``: one per line, each at most ``limit`` UTF-8 bytes."""
    for line in content.splitlines():
        chunk: List[str] = []
        size = 0
        for ch in line:
            n = len(ch.encode("utf-8"))
            if size + n > limit:
                yield "".join(chunk)
                chunk, size = [], 0
            chunk.append(ch)
            size += n
        if chunk:
            yield "".join(chunk)


@dataclass(eq=False)
class BridgeSession:
    """One client's upstream IRC session."""
    conn: Connection
    nickname: str  # Nickname used upstream (the network may change it at welcome)
    host: str
    port: int
    channels: List[str]  # Joined upstream once registered
    realname: str
    ssl: bool = False
    upstream: Optional[AioConnection] = None
    task: Optional[asyncio.Task] = None
    registered: bool = False
    joined: Set[str] = field(default_factory=set)  # Confirmed by the network

    @property
    def network(self) -> str:
        return f"{self.host}:{self.port}"


class IrcBridge:
    """
    Per-connection sessions on real IRC networks.

    ``open``/``close`` and the mirror operations are synchronous; the TCP
    connect runs as a task and everything after it is event driven.
    """

    def __init__(
        self,
        allowed_hosts: Iterable[str] = (),
        default_port: int = 6667,
        realname: str = "Station V Bot",
        quit_message: str = "Station V Export ending",
    ):
        self.allowed_hosts = {h.lower() for h in allowed_hosts}  # Empty: any host
        self.default_port = default_port
        self.realname = realname
        self.quit_message = quit_message
        # Replaced by the hub so relayed messages share its id sequence
        self.next_message_id: Callable[[], int] = MessageIdSequence().next
        self._reactor: Optional[AioReactor] = None
        self._sessions: Dict[str, BridgeSession] = {}  # connection id -> session
        self._by_upstream: Dict[AioConnection, BridgeSession] = {}

    # -------- session lifecycle --------
    def open(
        self,
        conn: Connection,
        nickname: str,
        host: str,
        port: Optional[int] = None,
        channels: Iterable[str] = (),
        realname: Optional[str] = None,
        ssl: bool = False,
    ) -> BridgeSession:
        """
        Start a session for ``conn``, replacing any session it already has.

        Raises:
            BridgeUnavailable: ``host`` is not in the allowed hosts.
        """
        if self.allowed_hosts and host.lower() not in self.allowed_hosts:
            raise BridgeUnavailable(f"IRC server {host} is not allowed")
        self.close(conn)
        session = BridgeSession(
            conn=conn,
            nickname=nickname,
            host=host,
            port=port or self.default_port,
            channels=list(channels),
            realname=realname or self.realname,
            ssl=ssl,
        )
        self._sessions[conn.id] = session
        logger.info("[bridge] %s connecting to %s as %s", conn.id[:8], session.network, nickname)
        self._emit(session, BridgeStatusEvent(type="connecting", network=session.network, nickname=nickname))
        session.task = asyncio.get_running_loop().create_task(self._connect(session))
        return session

    def close(self, conn: Connection, notify: bool = False) -> bool:
        """
        End ``conn``'s session, if any. Idempotent.
        ``notify`` sends the client a ``disconnected`` frame (its socket is still open).
        """
        session = self._sessions.get(conn.id)
        if session is None:
            return False
        self._end(session, notify=notify)
        return True

    def close_all(self) -> None:
        for session in list(self._sessions.values()):
            self._end(session, notify=False)

    def session_for(self, conn: Connection) -> Optional[BridgeSession]:
        return self._sessions.get(conn.id)

    def __len__(self) -> int:
        return len(self._sessions)

    # -------- mirrored client actions --------
    def join(self, conn: Connection, channel: str) -> None:
        session = self._sessions.get(conn.id)
        if session is None:
            return
        if channel not in session.channels:
            session.channels.append(channel)
        if session.registered:
            session.upstream.join(channel)

    def part(self, conn: Connection, channel: str) -> None:
        session = self._sessions.get(conn.id)
        if session is None:
            return
        if channel in session.channels:
            session.channels.remove(channel)
        if session.registered and channel in session.joined:
            session.joined.discard(channel)
            session.upstream.part(channel)

    def say(self, conn: Connection, channel: str, content: str) -> bool:
        """Send ``content`` to ``channel`` upstream. False if the session has not joined it."""
        session = self._sessions.get(conn.id)
        if session is None:
            return False
        if not session.registered or channel not in session.joined:
            logger.info("[bridge] %s not in %s on %s, message kept local", session.nickname, channel, session.network)
            return False
        for piece in split_for_irc(content):
            session.upstream.privmsg(channel, piece)
        return True

    # -------- upstream --------
    async def _connect(self, session: BridgeSession) -> None:
        upstream = self._get_reactor().server()
        session.upstream = upstream
        self._by_upstream[upstream] = session
        factory = AioFactory(ssl=True) if session.ssl else AioFactory()
        try:
            await upstream.connect(
                session.host,
                session.port,
                session.nickname,
                username=session.nickname,
                ircname=session.realname,
                connect_factory=factory,
            )
        except (OSError, ServerConnectionError) as e:
            logger.warning("[bridge] connection to %s failed: %s", session.network, e)
            self._forget(session)
            self._emit(session, ErrorEvent(message=f"IRC connection to {session.network} failed"))
            self._emit(session, BridgeStatusEvent(type="disconnected", network=session.network))

    def _get_reactor(self) -> AioReactor:
        loop = asyncio.get_running_loop()
        if self._reactor is None or self._reactor.loop is not loop:
            reactor = AioReactor(loop=loop)
            for event_type, handler in (
                ("welcome", self._on_welcome),
                ("join", self._on_join),
                ("part", self._on_part),
                ("pubmsg", self._on_pubmsg),
                ("nicknameinuse", self._on_nickname_in_use),
                ("error", self._on_error),
                ("disconnect", self._on_disconnect),
            ):
                reactor.add_global_handler(event_type, handler)
            self._reactor = reactor
        return self._reactor

    def _on_welcome(self, upstream: AioConnection, event: Event) -> None:
        session = self._by_upstream.get(upstream)
        if session is None:
            return
        session.registered = True
        session.nickname = upstream.get_nickname() or session.nickname
        logger.info("[bridge] %s registered on %s", session.nickname, session.network)
        self._emit(session, BridgeStatusEvent(type="connected", network=session.network, nickname=session.nickname))
        for channel in session.channels:
            upstream.join(channel)

    def _on_join(self, upstream: AioConnection, event: Event) -> None:
        session = self._by_upstream.get(upstream)
        if session is None:
            return
        nick, channel = event.source.nick, event.target
        if nick == session.nickname:
            session.joined.add(channel)
            self._emit(session, UpstreamJoinedEvent(channel=channel, nickname=nick, network=session.network))
        else:
            self._emit(session, MembershipEvent(type="user_joined", nickname=nick, channel=channel, network=session.network))

    def _on_part(self, upstream: AioConnection, event: Event) -> None:
        session = self._by_upstream.get(upstream)
        if session is None:
            return
        nick, channel = event.source.nick, event.target
        if nick == session.nickname:
            session.joined.discard(channel)
            return
        self._emit(session, MembershipEvent(type="user_parted", nickname=nick, channel=channel, network=session.network))

    def _on_pubmsg(self, upstream: AioConnection, event: Event) -> None:
        session = self._by_upstream.get(upstream)
        if session is None or event.source is None:
            return
        nick = event.source.nick
        if nick == session.nickname:
            return
        message = Message(id=self.next_message_id(), nickname=nick, content=event.arguments[0])
        self._emit(
            session,
            MessageEvent(message=MessageOut.from_message(message), channel=event.target, network=session.network),
        )

    def _on_nickname_in_use(self, upstream: AioConnection, event: Event) -> None:
        session = self._by_upstream.get(upstream)
        if session is None:
            return
        logger.info("[bridge] nickname %s refused by %s", session.nickname, session.network)
        self._emit(session, ErrorEvent(message=f"Nickname {session.nickname} already in use on {session.network}"))
        self._end(session, notify=True)

    def _on_error(self, upstream: AioConnection, event: Event) -> None:
        session = self._by_upstream.get(upstream)
        if session is None:
            return
        logger.warning("[bridge] %s reported: %s", session.network, event.target)
        self._emit(session, ErrorEvent(message=f"IRC error from {session.network}: {event.target}"))

    def _on_disconnect(self, upstream: AioConnection, event: Event) -> None:
        # Sessions we end ourselves are forgotten first and never get here
        session = self._by_upstream.get(upstream)
        if session is None:
            return
        logger.info("[bridge] %s closed the session for %s", session.network, session.nickname)
        self._forget(session)
        self._emit(session, BridgeStatusEvent(type="disconnected", network=session.network))

    # -------- helpers --------
    def _end(self, session: BridgeSession, notify: bool) -> None:
        self._forget(session)
        if session.task is not None and not session.task.done():
            session.task.cancel()
        elif session.upstream is not None and session.upstream.is_connected():
            session.upstream.disconnect(self.quit_message)
        logger.info("[bridge] session of %s on %s ended", session.nickname, session.network)
        if notify:
            self._emit(session, BridgeStatusEvent(type="disconnected", network=session.network))

    def _forget(self, session: BridgeSession) -> None:
        if self._sessions.get(session.conn.id) is session:
            del self._sessions[session.conn.id]
        if session.upstream is not None:
            self._by_upstream.pop(session.upstream, None)
            if self._reactor is not None and session.upstream in self._reactor.connections:
                self._reactor.connections.remove(session.upstream)

    def _emit(self, session: BridgeSession, event: BaseModel) -> None:
        pubsub.pub_unicast(session.conn, to_wire(event))


def build_bridge() -> Optional[IrcBridge]:
    """The configured bridge, or None when IRC_BRIDGE_ENABLED is off."""
    if not settings.irc_bridge_enabled:
        return None
    return IrcBridge(
        allowed_hosts=settings.irc_allowed_hosts,
        default_port=settings.irc_default_port,
        realname=settings.irc_realname,
        quit_message=settings.irc_quit_message,
    )
