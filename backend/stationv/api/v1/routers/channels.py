# stationv/api/v1/routers/channels.py
"""
Read-only introspection of the relay state.
Nothing here mutates channels or users; all changes go through the WebSocket protocol.
"""
from typing import List

from fastapi import APIRouter, HTTPException, status

from stationv.core.router import hub
from stationv.schemas.channel import ChannelDetailOut, ChannelSummary, MessageOut, UserOut

router = APIRouter(tags=["Relay"])


def _user_out(nickname: str) -> UserOut:
    return UserOut.from_user(hub.identity.get(nickname), hub.directory.channels_of(nickname))


@router.get("/channels", response_model=List[ChannelSummary])
async def list_channels():
    """
    List every channel the relay knows about, including empty ones.

    Returns:
        Channels sorted by name with member and history counts.
    """
    out = []
    for name in hub.directory.names():
        snap = hub.directory.snapshot(name)
        out.append(
            ChannelSummary(
                name=snap.name,
                topic=snap.topic,
                userCount=len(snap.members),
                messageCount=len(snap.messages),
            )
        )
    return out


@router.get("/channels/{name}", response_model=ChannelDetailOut)
async def get_channel(name: str):
    """
    Return one channel's members, recent history and topic.

    Channel names usually start with '#', which clients must URL-encode (%23).

    Raises:
        HTTPException (404): Channel was never created (CHANNEL_NOT_FOUND)
    """
    snap = hub.directory.snapshot(name)
    if snap is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="CHANNEL_NOT_FOUND")
    return ChannelDetailOut(
        name=snap.name,
        topic=snap.topic,
        users=[_user_out(n) for n in snap.members if n in hub.identity],
        messages=[MessageOut.from_message(m) for m in snap.messages],
    )


@router.get("/users", response_model=List[UserOut])
async def list_users():
    """List every registered user with the channels it is in."""
    return [_user_out(u.nickname) for u in hub.identity.users()]
