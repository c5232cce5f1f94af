# stationv/models/user.py
"""
Relay participant model.
A user exists from registration until quit/disconnect and is keyed by its
nickname, which is unique across all live users.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

UserKind = Literal["human", "virtual", "bot"]


@dataclass
class User:
    """
    A participant bound to exactly one live connection.

    Channel memberships are not stored here; the channel directory owns both
    sides of the membership relation so they can never drift apart.
    The connection binding, not channel membership, bounds the user's
    lifetime: parting the last channel leaves the user registered.
    """
    nickname: str  # Unique key, mutable via rename
    connection_id: str  # Transport session this user is bound to
    kind: UserKind = "human"  # Informational only (rendered by clients)
    status: str = "online"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
