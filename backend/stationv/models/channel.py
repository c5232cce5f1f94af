# stationv/models/channel.py
"""
Channel model.
Channels are created lazily on first join and never deleted; an empty
channel keeps its history and topic.
"""
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Set

from .message import Message

DEFAULT_HISTORY_LIMIT = 100


@dataclass
class Channel:
    """
    A topic-addressable group.

    ``messages`` is a bounded FIFO log: once ``history_limit`` messages are
    held, appending evicts the oldest one.
    """
    name: str  # Unique key
    history_limit: int = DEFAULT_HISTORY_LIMIT
    members: Set[str] = field(default_factory=set)  # Member nicknames
    topic: str = ""
    messages: Deque[Message] = field(init=False)

    def __post_init__(self):
        self.messages = deque(maxlen=self.history_limit)

    def append(self, message: Message) -> Message:
        self.messages.append(message)
        return message
