# stationv/models/__init__.py
"""
In-memory relay models.

Nothing here is persisted: all users, channels and messages live in process
memory and are lost when the relay restarts.

Models exported:
- User: a live participant bound to one connection
- Channel: a named group with members, bounded history and topic
- Message: one immutable chat utterance
- MessageIdSequence: monotonic id source for messages
"""
from .user import User, UserKind
from .channel import Channel
from .message import Message, MessageKind, MessageIdSequence
