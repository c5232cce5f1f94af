import logging

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect

from stationv.config import settings
from stationv.core.pubsub import Connection
from stationv.core.router import hub

router = APIRouter()
logger = logging.getLogger(__name__)

@router.websocket(settings.ws_path)
async def ws_relay(ws: WebSocket):
    """
    WebSocket endpoint for the Station V relay protocol.

    Every frame in either direction is a JSON object with a ``type`` tag.

    Message flow:
    1. Client connects to WebSocket
    2. Client sends: {"type": "register", "nickname": "...", "channels": [...]}
    3. Server replies: {"type": "registered", "nickname": "...", "success": true}
    4. Client sends join / part / message / ai_message / nick / topic frames
    5. Server fans out joined, user_joined, user_parted, message, nick_change, ... frames

    Args:
        ws: WebSocket connection object

    Note:
        Malformed frames never close the socket. When the socket goes away
        (clean close, network error, or server shutdown) the user parts every
        channel and a user_quit is broadcast, exactly once.
    """
    await ws.accept()
    conn = Connection(ws)
    conn.start()
    hub.attach(conn)
    logger.info("[ws_relay] connected %s", conn.id[:8])
    try:
        while True:
            pkt = await ws.receive()
            if pkt["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(pkt.get("code", 1000))
            # Text frames normally; binary frames are decoded the same way
            raw = pkt.get("text")
            if raw is None:
                raw = pkt.get("bytes")
            hub.handle_raw(conn, raw)
    except WebSocketDisconnect as e:
        logger.info("[ws_relay] disconnected %s code=%s", conn.id[:8], e.code)
    except Exception as e:
        logger.warning("[ws_relay] error on %s: %r", conn.id[:8], e)
    finally:
        hub.disconnect(conn)
        await conn.close()
