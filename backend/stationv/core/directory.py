# stationv/core/directory.py
"""
Channel directory: the authoritative channel-name -> channel-state mapping.

The directory owns BOTH sides of the many-to-many membership relation
(channel -> members and nickname -> channels). Every join/part/rename updates
the two maps inside one synchronous call, so an observer on the event loop can
never see them disagree.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from stationv.models import Channel, Message
from stationv.models.channel import DEFAULT_HISTORY_LIMIT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChannelSnapshot:
    """Point-in-time copy of a channel, handed to a joining client."""
    name: str
    members: List[str]  # Sorted member nicknames
    messages: List[Message]  # Oldest first
    topic: str


class ChannelDirectory:
    """
    In-memory channel store.

    Not thread-safe: all calls must come from the relay's event loop, which is
    the single writer for this state.
    """

    def __init__(self, history_limit: int = DEFAULT_HISTORY_LIMIT):
        self.history_limit = history_limit
        self._channels: Dict[str, Channel] = {}
        self._memberships: Dict[str, Set[str]] = {}  # nickname -> channel names

    # -------- membership --------
    def join(self, nickname: str, channel_name: str) -> ChannelSnapshot:
        """
        Add ``nickname`` to ``channel_name``, creating the channel if needed.

        Returns the snapshot taken after the join, so the joiner always sees
        itself in the member list.
        """
        channel = self._channels.get(channel_name)
        if channel is None:
            channel = Channel(name=channel_name, history_limit=self.history_limit)
            self._channels[channel_name] = channel
            logger.info("[relay] created channel %s", channel_name)
        channel.members.add(nickname)
        self._memberships.setdefault(nickname, set()).add(channel_name)
        return self.snapshot(channel_name)

    def part(self, nickname: str, channel_name: str) -> bool:
        """
        Remove ``nickname`` from ``channel_name``.

        Returns False (and changes nothing) if it was not a member. The
        channel itself is kept even when it becomes empty.
        """
        channel = self._channels.get(channel_name)
        if channel is None or nickname not in channel.members:
            return False
        channel.members.discard(nickname)
        joined = self._memberships.get(nickname)
        if joined is not None:
            joined.discard(channel_name)
            if not joined:
                del self._memberships[nickname]
        return True

    def part_all(self, nickname: str) -> List[str]:
        """Part every channel ``nickname`` is in; returns the channels left, sorted."""
        parted = sorted(self._memberships.get(nickname, ()))
        for name in parted:
            self.part(nickname, name)
        return parted

    def rename_member(self, old: str, new: str) -> None:
        """Move every membership of ``old`` over to ``new``."""
        joined = self._memberships.pop(old, set())
        for name in joined:
            members = self._channels[name].members
            members.discard(old)
            members.add(new)
        if joined:
            self._memberships[new] = joined

    # -------- messages / topic --------
    def post_message(self, channel_name: str, message: Message) -> Optional[Message]:
        """
        Append ``message`` to the channel log, evicting the oldest entry beyond
        the history limit.

        Posting to a channel that does not exist is logged and ignored; the
        caller gets None back.
        """
        channel = self._channels.get(channel_name)
        if channel is None:
            logger.warning("[relay] message %s to unknown channel %s dropped", message.id, channel_name)
            return None
        return channel.append(message)

    def set_topic(self, channel_name: str, topic: str) -> bool:
        channel = self._channels.get(channel_name)
        if channel is None:
            return False
        channel.topic = topic
        return True

    # -------- queries (return copies) --------
    def members_of(self, channel_name: str) -> Set[str]:
        channel = self._channels.get(channel_name)
        return set(channel.members) if channel else set()

    def channels_of(self, nickname: str) -> Set[str]:
        return set(self._memberships.get(nickname, ()))

    def is_member(self, nickname: str, channel_name: str) -> bool:
        return channel_name in self._memberships.get(nickname, ())

    def exists(self, channel_name: str) -> bool:
        return channel_name in self._channels

    def get(self, channel_name: str) -> Optional[Channel]:
        return self._channels.get(channel_name)

    def names(self) -> List[str]:
        return sorted(self._channels)

    def snapshot(self, channel_name: str) -> Optional[ChannelSnapshot]:
        channel = self._channels.get(channel_name)
        if channel is None:
            return None
        return ChannelSnapshot(
            name=channel.name,
            members=sorted(channel.members),
            messages=list(channel.messages),
            topic=channel.topic,
        )
