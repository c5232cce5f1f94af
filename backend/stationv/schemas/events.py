# stationv/schemas/events.py
"""
Outbound frames (relay -> client).
Dumped with ``to_wire`` so optional fields that are unset are left out.
"""
from typing import Literal, Optional

from pydantic import BaseModel

from .channel import ChannelData, MessageOut

__all__ = [
    "RegisteredEvent",
    "JoinedEvent",
    "MembershipEvent",
    "MessageEvent",
    "NickChangeEvent",
    "TopicChangeEvent",
    "BridgeStatusEvent",
    "UpstreamJoinedEvent",
    "ErrorEvent",
    "to_wire",
]


class RegisteredEvent(BaseModel):
    """Unicast ack for ``register``/``config``; carries the nickname actually granted."""
    type: Literal["registered"] = "registered"
    nickname: str
    success: bool = True


class JoinedEvent(BaseModel):
    """Unicast snapshot for the joiner; always sent before ``user_joined`` goes out."""
    type: Literal["joined"] = "joined"
    channel: str
    nickname: str
    channelData: ChannelData


class MembershipEvent(BaseModel):
    type: Literal["user_joined", "user_parted", "user_quit"]
    nickname: str
    channel: Optional[str] = None  # Absent on user_quit
    network: Optional[str] = None  # Set when relayed from an upstream IRC network


class MessageEvent(BaseModel):
    type: Literal["message", "ai_message"] = "message"
    message: MessageOut
    channel: str
    network: Optional[str] = None


class NickChangeEvent(BaseModel):
    type: Literal["nick_change"] = "nick_change"
    oldNickname: str
    newNickname: str


class TopicChangeEvent(BaseModel):
    type: Literal["topic_change"] = "topic_change"
    channel: str
    topic: str
    nickname: str  # Who set it


class BridgeStatusEvent(BaseModel):
    """Progress of this connection's upstream IRC session."""
    type: Literal["connecting", "connected", "disconnected"]
    network: str  # "host:port"
    nickname: Optional[str] = None


class UpstreamJoinedEvent(BaseModel):
    """The upstream network confirmed our JOIN. Carries no snapshot."""
    type: Literal["joined"] = "joined"
    channel: str
    nickname: str
    network: str


class ErrorEvent(BaseModel):
    """Informational; the client keeps the connection open."""
    type: Literal["error"] = "error"
    message: str


def to_wire(event: BaseModel) -> dict:
    return event.model_dump(mode="json", exclude_none=True)
