# stationv/schemas/frames.py
"""
Inbound frames (client -> relay).

Every frame is a JSON object discriminated by ``type``. The closed union
below is validated once at the boundary by ``parse_frame``; anything that
does not fit (bad JSON, unknown tag, missing field) becomes MalformedMessage.
"""
import json
from typing import Annotated, List, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, Field, StringConstraints, TypeAdapter, ValidationError

from stationv.core.errors import MalformedMessage

__all__ = [
    "NICKNAME_MAX_LENGTH",
    "RegisterFrame",
    "JoinFrame",
    "PartFrame",
    "ChatFrame",
    "AIMessageFrame",
    "NickFrame",
    "TopicFrame",
    "DisconnectFrame",
    "InboundFrame",
    "parse_frame",
]

NICKNAME_MAX_LENGTH = 32


def _check_nickname(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("nickname must not be empty")
    if len(value) > NICKNAME_MAX_LENGTH:
        raise ValueError(f"nickname longer than {NICKNAME_MAX_LENGTH} characters")
    if any(ch.isspace() for ch in value):
        raise ValueError("nickname must not contain whitespace")
    if value.startswith("#"):
        raise ValueError("nickname must not start with '#'")
    return value


Nickname = Annotated[str, AfterValidator(_check_nickname)]
ChannelName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=64)]
Content = Annotated[str, StringConstraints(min_length=1)]
Hostname = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=1, max_length=253, pattern=r"^[A-Za-z0-9.:\[\]-]+$")
]


class RegisterFrame(BaseModel):
    """
    ``register`` (relay) or ``config`` (IRC-proxy clients): claim a nickname.

    A frame that also names an upstream ``server`` opens an IRC bridge session
    for this connection, which joins ``channels`` on that network as well.
    """
    type: Literal["register", "config"]
    nickname: Nickname
    channels: List[ChannelName] = []  # Joined right after the ack
    userType: Literal["human", "virtual", "bot"] = "human"
    server: Optional[Hostname] = None
    port: Optional[int] = Field(None, ge=1, le=65535)  # Defaults to IRC_DEFAULT_PORT
    ssl: bool = False
    realname: Optional[Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=64)]] = None


class JoinFrame(BaseModel):
    type: Literal["join"]
    channel: ChannelName
    nickname: Optional[Nickname] = None  # Used for implicit registration only


class PartFrame(BaseModel):
    type: Literal["part"]
    channel: ChannelName


class ChatFrame(BaseModel):
    type: Literal["message"]
    channel: ChannelName
    content: Content


class AIMessageFrame(BaseModel):
    """Content produced by a virtual user hosted on the sending client."""
    type: Literal["ai_message"]
    channel: ChannelName
    content: Content
    nickname: Optional[Nickname] = None  # Virtual author; defaults to the sender


class NickFrame(BaseModel):
    type: Literal["nick"]
    newNickname: Nickname


class TopicFrame(BaseModel):
    type: Literal["topic"]
    channel: ChannelName
    topic: Annotated[str, StringConstraints(strip_whitespace=True, max_length=390)]


class DisconnectFrame(BaseModel):
    """Quit every channel and drop the nickname, keeping the socket open."""
    type: Literal["disconnect"]


InboundFrame = Annotated[
    Union[
        RegisterFrame,
        JoinFrame,
        PartFrame,
        ChatFrame,
        AIMessageFrame,
        NickFrame,
        TopicFrame,
        DisconnectFrame,
    ],
    Field(discriminator="type"),
]

_inbound = TypeAdapter(InboundFrame)


def parse_frame(raw: Union[str, bytes]) -> InboundFrame:
    """
    Decode and validate one inbound frame.

    Raises:
        MalformedMessage: not JSON (or nested too deeply to decode), not an
            object, unknown ``type`` or invalid/missing fields.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedMessage(f"frame is not valid JSON: {e}") from e
    except RecursionError as e:
        raise MalformedMessage("frame is nested too deeply") from e
    if not isinstance(data, dict):
        raise MalformedMessage("frame must be a JSON object")
    try:
        return _inbound.validate_python(data)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'frame'}: {err['msg']}" for err in e.errors()
        )
        raise MalformedMessage(f"invalid {data.get('type')!r} frame: {errors}") from e
