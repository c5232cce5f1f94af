# stationv/core/registry.py
"""
Connection registry: live connections and their nickname bindings.
"""
import logging
from typing import Dict, List, Optional

from stationv.core.errors import IdentityConflict
from stationv.core.pubsub import Connection

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """
    Tracks every attached connection and the nickname (if any) bound to it.

    Invariant: a nickname is bound to at most one connection, and a
    connection to at most one nickname.
    """

    def __init__(self):
        self._connections: Dict[str, Connection] = {}  # connection id -> Connection
        self._nick_by_conn: Dict[str, str] = {}  # connection id -> nickname
        self._conn_by_nick: Dict[str, str] = {}  # nickname -> connection id

    # -------- attach / detach --------
    def attach(self, conn: Connection) -> None:
        self._connections[conn.id] = conn

    def detach(self, conn: Connection) -> bool:
        """
        Forget ``conn`` entirely. Returns False if it was already detached,
        which makes the disconnect path idempotent.
        """
        if self._connections.pop(conn.id, None) is None:
            return False
        self.unregister(conn)
        return True

    def is_attached(self, conn: Connection) -> bool:
        return conn.id in self._connections

    # -------- bindings --------
    def register(self, conn: Connection, nickname: str) -> None:
        """
        Bind ``conn`` to ``nickname``.

        Raises:
            IdentityConflict: ``nickname`` belongs to a different live connection.
                Nothing is changed in that case.
        """
        owner = self._conn_by_nick.get(nickname)
        if owner is not None and owner != conn.id:
            raise IdentityConflict(nickname)
        previous = self._nick_by_conn.get(conn.id)
        if previous is not None and previous != nickname:
            del self._conn_by_nick[previous]
        self._nick_by_conn[conn.id] = nickname
        self._conn_by_nick[nickname] = conn.id

    def unregister(self, conn: Connection) -> Optional[str]:
        """Drop the binding of ``conn``. Idempotent; returns the nickname it had."""
        nickname = self._nick_by_conn.pop(conn.id, None)
        if nickname is not None:
            self._conn_by_nick.pop(nickname, None)
        return nickname

    def lookup(self, conn: Connection) -> Optional[str]:
        """Current nickname of ``conn``, or None when it is not registered."""
        return self._nick_by_conn.get(conn.id)

    def is_taken(self, nickname: str, by_other_than: Optional[Connection] = None) -> bool:
        owner = self._conn_by_nick.get(nickname)
        if owner is None:
            return False
        return by_other_than is None or owner != by_other_than.id

    def connection_for(self, nickname: str) -> Optional[Connection]:
        conn_id = self._conn_by_nick.get(nickname)
        return self._connections.get(conn_id) if conn_id else None

    def connections(self) -> List[Connection]:
        return list(self._connections.values())

    def __len__(self) -> int:
        return len(self._connections)
