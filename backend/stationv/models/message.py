# stationv/models/message.py
"""
Chat message model and its id sequence.
"""
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

MessageKind = Literal["user", "system", "bot", "ai"]


@dataclass(frozen=True)
class Message:
    """
    One chat utterance. Immutable once created.

    ``id`` is assigned from a monotonic sequence so clients receiving the same
    message over several paths (snapshot replay and live fan-out) can drop
    duplicates.
    """
    id: int
    nickname: str  # Author
    content: str
    kind: MessageKind = "user"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class MessageIdSequence:
    """Hands out strictly increasing message ids, starting at 1."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)
        self.last = start - 1

    def next(self) -> int:
        self.last = next(self._counter)
        return self.last
