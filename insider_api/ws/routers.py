"""WebSocket route handler for the room change stream."""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi import HTTPException
from fastapi import WebSocket
from fastapi import WebSocketDisconnect

from insider_api.api.deps import me
from insider_api.core.tokens import token_expiry_epoch
from insider_api.rooms.service import require_member
from insider_api.rooms.service import room_state
from insider_engine.errors import AuthorizationError
from insider_engine.errors import UpstreamError

from .heartbeat import ws_message_loop
from .protocol import WS_CLOSE_NOT_MEMBER
from .protocol import WS_CLOSE_UNAUTHORIZED
from .protocol import WS_CLOSE_UPSTREAM
from .protocol import ws_send_event
from .relay import RoomRelay

logger = logging.getLogger(__name__)

router = APIRouter()


async def close_ws_unauthorized(websocket: WebSocket) -> None:
    """Close websocket with unified unauthorized semantics."""
    await websocket.accept()
    await websocket.close(code=WS_CLOSE_UNAUTHORIZED, reason="UNAUTHORIZED")


@router.websocket("/ws/rooms/{room_id}")
async def ws_room(websocket: WebSocket, room_id: str) -> None:
    """Room websocket: auth + initial ROOM_SNAPSHOT + relayed CHANGE frames."""
    state = websocket.app.state
    settings = state.settings
    token = websocket.query_params.get("token")
    if token is None or token == "":
        await close_ws_unauthorized(websocket)
        return

    try:
        user_id = me(settings, token)
    except HTTPException:
        await close_ws_unauthorized(websocket)
        return
    token_expire = token_expiry_epoch(token, secret=settings.insider_jwt_secret)
    if token_expire is None:
        await close_ws_unauthorized(websocket)
        return

    try:
        await require_member(store=state.store, room_id=room_id, user_id=user_id, clock=state.clock)
    except AuthorizationError:
        await websocket.accept()
        await websocket.close(code=WS_CLOSE_NOT_MEMBER, reason="ROOM_NOT_MEMBER")
        return
    except UpstreamError as exc:
        logger.warning("membership check failed room=%s: %s", room_id, exc)
        await websocket.accept()
        await websocket.close(code=WS_CLOSE_UPSTREAM, reason="UPSTREAM_ERROR")
        return

    await websocket.accept()
    relay = RoomRelay(store=state.store, room_id=room_id, viewer_id=user_id)
    await relay.open()
    try:
        snapshot = await room_state(store=state.store, clock=state.clock, room_id=room_id, user_id=user_id)
        await ws_send_event(websocket, "ROOM_SNAPSHOT", snapshot)
        await ws_message_loop(
            websocket,
            interval_seconds=settings.insider_ws_heartbeat_interval_seconds,
            pong_timeout_seconds=settings.insider_ws_pong_timeout_seconds,
            token_expire_epoch_value=token_expire,
            companions=[relay.pump(websocket)],
        )
    except WebSocketDisconnect:
        return
    finally:
        relay.close()
