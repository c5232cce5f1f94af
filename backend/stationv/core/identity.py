# stationv/core/identity.py
"""
Identity manager: nickname lifecycle (claim, rename, quit).

Registration and rename treat collisions differently: a colliding
registration is given a suffixed nickname ("alice" -> "alice_1760000000000")
so the client can always get in, while a colliding rename is refused with
NameTaken. Clients rely on both behaviours.
"""
import logging
import time
from typing import Callable, Dict, List, Optional

from stationv.core.directory import ChannelDirectory
from stationv.core.errors import IdentityConflict, NameTaken
from stationv.core.pubsub import Connection
from stationv.core.registry import ConnectionRegistry
from stationv.models import User, UserKind

logger = logging.getLogger(__name__)


def _millis() -> int:
    return int(time.time() * 1000)


class IdentityManager:
    def __init__(
        self,
        registry: ConnectionRegistry,
        directory: ChannelDirectory,
        clock: Callable[[], int] = _millis,
    ):
        self.registry = registry
        self.directory = directory
        self._clock = clock
        self._users: Dict[str, User] = {}  # nickname -> User

    def claim(
        self,
        conn: Connection,
        nickname: str,
        kind: UserKind = "human",
        allow_suffix: bool = True,
    ) -> str:
        """
        Bind a fresh (unregistered) connection to ``nickname``.

        Returns the nickname actually granted, which differs from the request
        only when it was taken and ``allow_suffix`` is set.

        Raises:
            IdentityConflict: the nickname is taken and suffixing is disabled.
        """
        granted = nickname
        if self.registry.is_taken(nickname, by_other_than=conn):
            if not allow_suffix:
                raise IdentityConflict(nickname)
            granted = self.disambiguate(nickname)
            logger.info("[relay] nickname %s in use, granting %s", nickname, granted)
        self.registry.register(conn, granted)
        self._users[granted] = User(nickname=granted, connection_id=conn.id, kind=kind)
        return granted

    def disambiguate(self, nickname: str) -> str:
        """First free ``<nickname>_<millis>`` (bumping the number on the rare clash)."""
        stamp = self._clock()
        candidate = f"{nickname}_{stamp}"
        while self.registry.is_taken(candidate) or candidate in self._users:
            stamp += 1
            candidate = f"{nickname}_{stamp}"
        return candidate

    def rename(self, old: str, new: str) -> User:
        """
        Move user ``old`` (its registry binding and every channel membership)
        to ``new``.

        Raises:
            NameTaken: ``new`` is bound to a different live user. Nothing is
                changed in that case.
            KeyError: ``old`` is not a live user.
        """
        user = self._users[old]
        if new == old:
            return user
        if new in self._users or self.registry.is_taken(new):
            raise NameTaken(new)
        conn = self.registry.connection_for(old)
        del self._users[old]
        user.nickname = new
        self._users[new] = user
        if conn is not None:
            self.registry.register(conn, new)
        self.directory.rename_member(old, new)
        logger.info("[relay] %s is now known as %s", old, new)
        return user

    def quit(self, nickname: str) -> List[str]:
        """
        Remove ``nickname`` and part it from every channel it joined.

        Returns the parted channel names (sorted); empty when the user was
        already gone, so repeated calls are harmless.
        """
        user = self._users.pop(nickname, None)
        if user is None:
            return []
        parted = self.directory.part_all(nickname)
        conn = self.registry.connection_for(nickname)
        if conn is not None:
            self.registry.unregister(conn)
        logger.info("[relay] %s quit (parted %s)", nickname, ", ".join(parted) or "no channels")
        return parted

    # -------- queries --------
    def get(self, nickname: str) -> Optional[User]:
        return self._users.get(nickname)

    def users(self) -> List[User]:
        return [self._users[n] for n in sorted(self._users)]

    def __contains__(self, nickname: str) -> bool:
        return nickname in self._users
