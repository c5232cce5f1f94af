# stationv/core/router.py
"""
Message router: the relay's single coordinating authority.

Per-connection states: Unregistered -> Registered -> (member of 0..n channels).
There is no "current channel"; every channel action names its channel.

All handlers are synchronous and run on the event loop. A handler applies
its state change and queues the resulting frames in one uninterrupted step,
which gives us:
  - no lost updates between concurrent joins/parts/renames
  - a frame is only queued after the mutation it describes is applied
  - per-channel ordering, because each recipient's mailbox is FIFO
"""
import logging
from typing import Callable, Dict, Iterable, List, Optional, Type

from pydantic import BaseModel

from stationv.config import settings
from stationv.core import pubsub
from stationv.core.directory import ChannelDirectory
from stationv.core.errors import (
    BridgeUnavailable,
    IdentityConflict,
    MalformedMessage,
    NotAMember,
    NotRegistered,
    RelayError,
    UnknownChannel,
)
from stationv.core.identity import IdentityManager
from stationv.core.pubsub import Connection
from stationv.core.registry import ConnectionRegistry
from stationv.models import Message, MessageIdSequence
from stationv.models.channel import DEFAULT_HISTORY_LIMIT
from stationv.schemas.channel import ChannelData, MessageOut, UserOut
from stationv.schemas.events import (
    ErrorEvent,
    JoinedEvent,
    MembershipEvent,
    MessageEvent,
    NickChangeEvent,
    RegisteredEvent,
    TopicChangeEvent,
    to_wire,
)
from stationv.schemas.frames import (
    AIMessageFrame,
    ChatFrame,
    DisconnectFrame,
    JoinFrame,
    NickFrame,
    PartFrame,
    RegisterFrame,
    TopicFrame,
    parse_frame,
)
from stationv.services.irc_bridge import IrcBridge, build_bridge

logger = logging.getLogger(__name__)


class RelayHub:
    """
    Owns the connection registry, channel directory and identity manager.

    The four router actions (register, join/part, message, rename) plus
    disconnect are the only code paths that mutate membership state.
    With a bridge attached, a register frame naming a ``server`` also opens an
    upstream IRC session for that connection, mirrored by join/part/message.
    """

    def __init__(
        self,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        allow_nick_suffix: bool = True,
        bridge: Optional[IrcBridge] = None,
    ):
        self.history_limit = history_limit
        self.allow_nick_suffix = allow_nick_suffix
        # Optional upstream IRC sessions; None keeps the relay self-contained
        self.bridge = bridge
        if bridge is not None:
            bridge.next_message_id = self._next_message_id
        self.reset()
        # Dispatch table keyed by frame class (one entry per inbound tag family)
        self._handlers: Dict[Type[BaseModel], Callable[[Connection, BaseModel], None]] = {
            RegisterFrame: self._on_register,
            JoinFrame: self._on_join,
            PartFrame: self._on_part,
            ChatFrame: self._on_message,
            AIMessageFrame: self._on_ai_message,
            NickFrame: self._on_nick,
            TopicFrame: self._on_topic,
            DisconnectFrame: self._on_disconnect,
        }

    def reset(self) -> None:
        """Drop all users, channels and connections."""
        if self.bridge is not None:
            self.bridge.close_all()
        self.registry = ConnectionRegistry()
        self.directory = ChannelDirectory(history_limit=self.history_limit)
        self.identity = IdentityManager(self.registry, self.directory)
        self.message_ids = MessageIdSequence()

    # -------- connection lifecycle --------
    def attach(self, conn: Connection) -> None:
        self.registry.attach(conn)
        logger.info("[relay] connection %s attached (%d live)", conn.id[:8], len(self.registry))

    def disconnect(self, conn: Connection) -> None:
        """
        Run the quit cascade for a closed transport.

        Safe to call any number of times: only the first call for a given
        connection changes state or emits frames.
        """
        nickname = self.registry.lookup(conn)
        if not self.registry.detach(conn):
            return
        logger.info("[relay] connection %s detached (%d live)", conn.id[:8], len(self.registry))
        if self.bridge is not None:
            self.bridge.close(conn)
        if nickname is not None:
            self._quit(nickname)

    # -------- inbound --------
    def handle_raw(self, conn: Connection, raw) -> None:
        """
        Entry point for one inbound WebSocket frame.

        Malformed frames are logged and dropped; relay errors the client can
        act on come back to it as an ``error`` frame. The connection is never
        closed from here.
        """
        try:
            frame = parse_frame(raw)
        except MalformedMessage as e:
            logger.warning("[relay] dropped frame from %s: %s", conn.id[:8], e)
            return
        self.dispatch(conn, frame)

    def dispatch(self, conn: Connection, frame: BaseModel) -> None:
        handler = self._handlers.get(type(frame))
        if handler is None:
            logger.warning("[relay] no handler for %s", type(frame).__name__)
            return
        logger.debug("[relay] %s <- %s", conn.id[:8], frame.type)
        try:
            handler(conn, frame)
        except (IdentityConflict, NotRegistered, NotAMember, BridgeUnavailable) as e:
            self._error(conn, str(e))
        except RelayError as e:
            logger.warning("[relay] %s from %s ignored: %s", frame.type, conn.id[:8], e)

    # -------- handlers --------
    def _on_register(self, conn: Connection, frame: RegisterFrame) -> None:
        current = self.registry.lookup(conn)
        if current is None:
            granted = self.identity.claim(
                conn, frame.nickname, kind=frame.userType, allow_suffix=self.allow_nick_suffix
            )
        elif current == frame.nickname:
            granted = current
        else:
            # Re-registration under another name behaves as a rename, but with
            # the registration collision policy.
            target = frame.nickname
            if self.registry.is_taken(target, by_other_than=conn):
                if not self.allow_nick_suffix:
                    raise IdentityConflict(target)
                target = self.identity.disambiguate(target)
            granted = self._rename(current, target)
        if "userType" in frame.model_fields_set:
            self.identity.get(granted).kind = frame.userType
        logger.info("[relay] %s registered as %s", conn.id[:8], granted)
        self._send(conn, RegisteredEvent(nickname=granted))
        for channel in frame.channels:
            self._join(conn, granted, channel)
        if frame.server is not None:
            self._open_bridge(conn, granted, frame)

    def _on_join(self, conn: Connection, frame: JoinFrame) -> None:
        nickname = self.registry.lookup(conn)
        if nickname is None:
            if frame.nickname is None:
                raise NotRegistered()
            nickname = self.identity.claim(conn, frame.nickname, allow_suffix=self.allow_nick_suffix)
            self._send(conn, RegisteredEvent(nickname=nickname))
        self._join(conn, nickname, frame.channel)
        if self.bridge is not None:
            self.bridge.join(conn, frame.channel)

    def _on_part(self, conn: Connection, frame: PartFrame) -> None:
        nickname = self._require_nickname(conn)
        if self.bridge is not None:
            self.bridge.part(conn, frame.channel)
        if not self.directory.part(nickname, frame.channel):
            logger.info("[relay] %s parted %s without being a member", nickname, frame.channel)
            return
        logger.info("[relay] %s parted %s", nickname, frame.channel)
        self._to_channel(frame.channel, MembershipEvent(type="user_parted", nickname=nickname, channel=frame.channel))

    def _on_message(self, conn: Connection, frame: ChatFrame) -> None:
        nickname = self._require_member(conn, frame.channel)
        self._post(frame.channel, nickname, frame.content, kind="user", event_type="message")
        if self.bridge is not None:
            self.bridge.say(conn, frame.channel, frame.content)

    def _on_ai_message(self, conn: Connection, frame: AIMessageFrame) -> None:
        sender = self._require_member(conn, frame.channel)
        self._post(frame.channel, frame.nickname or sender, frame.content, kind="ai", event_type="ai_message")

    def _on_nick(self, conn: Connection, frame: NickFrame) -> None:
        old = self._require_nickname(conn)
        if frame.newNickname == old:
            return
        self._rename(old, frame.newNickname)

    def _on_topic(self, conn: Connection, frame: TopicFrame) -> None:
        nickname = self._require_member(conn, frame.channel)
        self.directory.set_topic(frame.channel, frame.topic)
        logger.info("[relay] %s set topic of %s", nickname, frame.channel)
        self._to_channel(
            frame.channel,
            TopicChangeEvent(channel=frame.channel, topic=frame.topic, nickname=nickname),
        )

    def _on_disconnect(self, conn: Connection, frame: DisconnectFrame) -> None:
        if self.bridge is not None:
            self.bridge.close(conn, notify=True)
        nickname = self.registry.lookup(conn)
        if nickname is None:
            return
        self._quit(nickname)

    # -------- state transitions --------
    def _join(self, conn: Connection, nickname: str, channel: str) -> None:
        already = self.directory.is_member(nickname, channel)
        snapshot = self.directory.join(nickname, channel)
        # Snapshot first: the joiner's mailbox gets "joined" before any
        # event that mentions it can reach anybody.
        self._send(
            conn,
            JoinedEvent(
                channel=channel,
                nickname=nickname,
                channelData=ChannelData(
                    users=[self._user_out(n) for n in snapshot.members if n in self.identity],
                    messages=[MessageOut.from_message(m) for m in snapshot.messages],
                    topic=snapshot.topic,
                ),
            ),
        )
        if already:
            return
        logger.info("[relay] %s joined %s (%d members)", nickname, channel, len(snapshot.members))
        self._to_channel(
            channel,
            MembershipEvent(type="user_joined", nickname=nickname, channel=channel),
            exclude=nickname,
        )

    def _post(self, channel: str, author: str, content: str, kind: str, event_type: str) -> None:
        message = Message(id=self.message_ids.next(), nickname=author, content=content, kind=kind)
        if self.directory.post_message(channel, message) is None:
            return
        self._to_channel(
            channel,
            MessageEvent(type=event_type, message=MessageOut.from_message(message), channel=channel),
        )

    def _rename(self, old: str, new: str) -> str:
        self.identity.rename(old, new)
        self._to_all(NickChangeEvent(oldNickname=old, newNickname=new))
        return new

    def _quit(self, nickname: str) -> None:
        parted = self.identity.quit(nickname)
        for channel in parted:
            self._to_channel(channel, MembershipEvent(type="user_parted", nickname=nickname, channel=channel))
        self._to_all(MembershipEvent(type="user_quit", nickname=nickname))

    # -------- helpers --------
    def _next_message_id(self) -> int:
        return self.message_ids.next()

    def _open_bridge(self, conn: Connection, nickname: str, frame: RegisterFrame) -> None:
        if self.bridge is None:
            raise BridgeUnavailable("IRC bridge is disabled")
        self.bridge.open(
            conn,
            nickname,
            frame.server,
            port=frame.port,
            channels=frame.channels,
            realname=frame.realname,
            ssl=frame.ssl,
        )

    def _require_nickname(self, conn: Connection) -> str:
        nickname = self.registry.lookup(conn)
        if nickname is None:
            raise NotRegistered()
        return nickname

    def _require_member(self, conn: Connection, channel: str) -> str:
        """
        Sender's nickname if it may post to ``channel``.
        UnknownChannel is logged and absorbed by ``dispatch``; NotAMember is
        reported to the sender.
        """
        nickname = self._require_nickname(conn)
        if not self.directory.exists(channel):
            raise UnknownChannel(channel)
        if not self.directory.is_member(nickname, channel):
            raise NotAMember(channel)
        return nickname

    def _user_out(self, nickname: str) -> UserOut:
        return UserOut.from_user(self.identity.get(nickname), self.directory.channels_of(nickname))

    def _error(self, conn: Connection, message: str) -> None:
        logger.info("[relay] error to %s: %s", conn.id[:8], message)
        self._send(conn, ErrorEvent(message=message))

    # -------- fan-out --------
    def _send(self, conn: Connection, event: BaseModel) -> None:
        pubsub.pub_unicast(conn, to_wire(event))

    def _to_channel(self, channel: str, event: BaseModel, exclude: Optional[str] = None) -> None:
        members = self.directory.members_of(channel)
        pubsub.pub_many(self._connections_for(sorted(members - {exclude})), to_wire(event))

    def _to_all(self, event: BaseModel) -> None:
        pubsub.pub_many(self.registry.connections(), to_wire(event))

    def _connections_for(self, nicknames: Iterable[str]) -> List[Connection]:
        conns = []
        for nickname in nicknames:
            conn = self.registry.connection_for(nickname)
            if conn is not None:
                conns.append(conn)
        return conns


# Global hub instance (singleton pattern)
# The WebSocket endpoint and the REST routers import this instance.
hub = RelayHub(
    history_limit=settings.history_limit,
    allow_nick_suffix=settings.allow_nick_suffix,
    bridge=build_bridge(),
)
