# stationv/core/errors.py
"""
Relay error taxonomy.

Every protocol-level failure is recovered inside the relay: it is either
reported back to the originating client as an ``error`` frame or logged and
absorbed. None of these exceptions is allowed to close a connection or stop
the process.
"""


class RelayError(Exception):
    """Base class for all relay errors."""


class MalformedMessage(RelayError):
    """Inbound frame is not JSON, has an unknown ``type`` or misses required fields."""


class IdentityConflict(RelayError):
    """Nickname is already bound to a different live connection."""

    def __init__(self, nickname: str):
        super().__init__("Nickname already in use")
        self.nickname = nickname


class NameTaken(IdentityConflict):
    """Rename target is already bound to a different live user."""


class NotRegistered(RelayError):
    """Connection tried a channel action before registering a nickname."""

    def __init__(self):
        super().__init__("Not registered")


class NotAMember(RelayError):
    """Sender is not a member of the channel it is addressing."""

    def __init__(self, channel: str):
        super().__init__(f"Not a member of {channel}")
        self.channel = channel


class UnknownChannel(RelayError):
    """Action addressed a channel that was never created."""

    def __init__(self, channel: str):
        super().__init__(f"No such channel {channel}")
        self.channel = channel


class DeliveryFailure(RelayError):
    """Sending a frame to one connection failed (transport already closed)."""

    def __init__(self, connection_id: str, cause: BaseException):
        super().__init__(f"delivery to {connection_id} failed: {cause!r}")
        self.connection_id = connection_id
        self.cause = cause


class BridgeUnavailable(RelayError):
    """An upstream IRC session was requested but the bridge is off or the server is not allowed."""
