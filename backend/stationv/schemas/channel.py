# stationv/schemas/channel.py
"""
Pydantic schemas for channel state.
Shared by the ``joined`` snapshot frame and the read-only REST endpoints.
"""
from typing import List

from pydantic import BaseModel

from stationv.models import Message, User

__all__ = [
    "MessageOut",
    "UserOut",
    "ChannelData",
    "ChannelSummary",
    "ChannelDetailOut",
]


class MessageOut(BaseModel):
    """
    Wire form of a chat message.
    ``id`` lets clients de-duplicate a message seen in a snapshot and again live.
    """
    id: int  # Monotonic message identifier
    nickname: str  # Author
    content: str  # Message text
    timestamp: str  # ISO-8601, UTC
    type: str  # "user" | "system" | "bot" | "ai"

    @classmethod
    def from_message(cls, message: Message) -> "MessageOut":
        return cls(
            id=message.id,
            nickname=message.nickname,
            content=message.content,
            timestamp=message.timestamp.isoformat(),
            type=message.kind,
        )


class UserOut(BaseModel):
    """Wire form of a participant as listed in channel snapshots."""
    nickname: str
    type: str = "human"  # "human" | "virtual" | "bot"
    status: str = "online"
    channels: List[str] = []  # Channels the user is currently in (sorted)

    @classmethod
    def from_user(cls, user: User, channels) -> "UserOut":
        return cls(
            nickname=user.nickname,
            type=user.kind,
            status=user.status,
            channels=sorted(channels),
        )


class ChannelData(BaseModel):
    """
    Channel snapshot sent to a client right after it joins, so a late joiner
    can replay history locally.
    """
    users: List[UserOut]
    messages: List[MessageOut]  # Oldest first, at most HISTORY_LIMIT entries
    topic: str = ""


class ChannelSummary(BaseModel):
    """Channel list entry (GET /api/v1/channels)."""
    name: str
    topic: str
    userCount: int
    messageCount: int


class ChannelDetailOut(ChannelData):
    """Full channel view (GET /api/v1/channels/{name})."""
    name: str
